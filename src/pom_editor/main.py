import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .add_dependency import ChangeAction
from .cli_config import (
    EditorConfig,
    apply_config_section,
    create_sample_config,
    get_config,
    load_config_file,
    validate_config_values,
)
from .editor import AddDependencyOptions, EditorCollaborators, run_add_dependency
from .error_handling import (
    AddDependencyError,
    DependencyError,
    ManifestError,
    RollbackFailed,
)
from .parsers import parse_pom_xml
from .structured_logging import configure_logging

__version__ = "1.0.0"

console = Console(soft_wrap=True, emoji=False)
err_console = Console(stderr=True, soft_wrap=True, emoji=False)


def _setup_logging(verbose: bool) -> None:
    config = get_config()
    level = "INFO" if verbose else config.logging.log_level
    configure_logging(level, config.logging.enable_json)


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📝 pom-editor: add or upgrade dependencies in a Maven pom.xml

    Every edit is backed up first and rolled back if it fails.
    """
    if version:
        console.print(f"pom-editor version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command("add-dep")
@click.option(
    "--gav",
    "-g",
    required=True,
    help="Dependency identifier as <groupId>:<artifactId>:<version>",
)
@click.option("--type", "dep_type", help="Dependency type (default: jar)")
@click.option("--classifier", help="Dependency classifier")
@click.option(
    "--scope",
    help="Dependency scope (compile, provided, runtime, test, system, import)",
)
@click.option(
    "--pom",
    type=click.Path(dir_okay=False),
    help="POM file to edit (default: pom.xml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show transaction steps")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")
def add_dep(
    gav: str,
    dep_type: Optional[str],
    classifier: Optional[str],
    scope: Optional[str],
    pom: Optional[str],
    verbose: bool,
    quiet: bool,
):
    """Add a dependency to a POM, or upgrade it if the POM declares an older version."""
    _setup_logging(verbose)

    def log(message: str) -> None:
        if verbose:
            console.print(message, style="dim", markup=False)

    options = AddDependencyOptions(
        gav=gav, type=dep_type, classifier=classifier, scope=scope, pom=pom
    )
    collaborators = EditorCollaborators.from_config(get_config(), log=log)

    try:
        change = run_add_dependency(options, collaborators)
    except DependencyError as e:
        raise click.BadParameter(str(e), param_hint="'--gav' / dependency attributes")
    except AddDependencyError as e:
        err_console.print(f"❌ {e}", style="red", markup=False)
        if isinstance(e.cause, RollbackFailed):
            err_console.print(
                "🚨 Rollback failed: the POM may be inconsistent.", style="bold red"
            )
            if e.cause.backup_path is not None:
                err_console.print(
                    f"   Original content: {e.cause.backup_path}", style="red"
                )
        sys.exit(1)

    if quiet:
        return

    dependency = change.dependency
    pom_file = options.pom or get_config().edit.default_pom
    if change.action is ChangeAction.ADDED:
        console.print(
            f"✅ Added {dependency.coordinates} to {pom_file}",
            style="green",
            markup=False,
        )
    elif change.action is ChangeAction.UPGRADED:
        console.print(
            f"⬆️  Upgraded {dependency.group_id}:{dependency.artifact_id} "
            f"from {change.previous_version} to {dependency.version} in {pom_file}",
            style="green",
            markup=False,
        )
    else:
        console.print(
            f"ℹ️  {dependency} left unchanged in {pom_file}: {change.reason}",
            style="blue",
            markup=False,
        )


@cli.command("list")
@click.option(
    "--pom",
    type=click.Path(dir_okay=False),
    help="POM file to read (default: pom.xml)",
)
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"]),
    default="console",
    show_default=True,
    help="Output format",
)
def list_dependencies(pom: Optional[str], output_format: str):
    """List the dependencies declared in a POM."""
    pom_file = pom or get_config().edit.default_pom
    try:
        dependencies = parse_pom_xml(pom_file)
    except ManifestError as e:
        raise click.ClickException(f"Failed to read {pom_file}: {e}")

    if output_format == "json":
        print(json.dumps(dependencies, indent=2, ensure_ascii=False))
        return

    if not dependencies:
        console.print(f"ℹ️  No dependencies declared in {pom_file}", style="blue")
        return

    table = Table(title=f"Dependencies of {pom_file}", box=box.SIMPLE)
    table.add_column("Group", style="cyan")
    table.add_column("Artifact", style="bold")
    table.add_column("Version")
    table.add_column("Type")
    table.add_column("Classifier")
    table.add_column("Scope")
    for dep in dependencies:
        table.add_row(
            dep["group_id"] or "",
            dep["artifact_id"],
            dep["version"] or "(managed)",
            dep["type"],
            dep["classifier"] or "",
            dep["scope"] or "",
        )
    console.print(table)


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".pom-editor.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")
    console.print("Edit this file to customize your settings", style="dim")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]📝 Edit Settings:[/bold cyan]")
    console.print(f"  Default POM: {current_config.edit.default_pom}")
    console.print(f"  Default Type: {current_config.edit.default_type}")
    console.print(f"  Backup Suffix: {current_config.edit.backup_suffix}")
    console.print(
        f"  Keep Backup On Rollback: {current_config.edit.keep_backup_on_rollback}"
    )
    console.print(f"  Indent: {current_config.edit.indent!r}")

    console.print("\n[bold cyan]🔒 Security Settings:[/bold cyan]")
    console.print(f"  Max File Size: {current_config.security.max_file_size_mb} MB")
    console.print(
        f"  Allowed Extensions: {', '.join(current_config.security.allowed_file_extensions)}"
    )

    console.print("\n[bold cyan]📋 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  JSON Output: {current_config.logging.enable_json}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))

    if not isinstance(config_data, dict):
        raise click.ClickException(f"Could not load config from {config_file}")

    candidate = EditorConfig()
    for section_name in ("edit", "security", "logging"):
        if section_name in config_data:
            apply_config_section(
                getattr(candidate, section_name),
                config_data[section_name],
                section_name,
            )

    errors = validate_config_values(candidate)
    if errors:
        console.print("❌ Configuration validation failed:", style="red")
        for error in errors:
            console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
