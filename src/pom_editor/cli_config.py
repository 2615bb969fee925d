"""
Configuration management for pom-editor.

Settings come from an optional config file (JSON or YAML) and are then
overridden by POM_EDITOR_* environment variables.
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console

from .dependency import is_valid_token

try:
    import yaml

    HAS_YAML = True
except ImportError:
    HAS_YAML = False

console = Console(stderr=True)


@dataclass
class EditConfig:
    """Manifest editing configuration."""

    default_pom: str = "pom.xml"
    default_type: str = "jar"
    backup_suffix: str = ".backup"
    keep_backup_on_rollback: bool = False
    indent: str = "    "  # used when the document has no indentation to copy


@dataclass
class SecurityConfig:
    """Limits on the files the editor agrees to open."""

    max_file_size_mb: int = 10
    allowed_file_extensions: List[str] = field(default_factory=lambda: [".xml"])

    @property
    def max_file_size_bytes(self) -> int:
        """Convert MB to bytes for internal use."""
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"
    enable_json: bool = True


@dataclass
class EditorConfig:
    """Main configuration containing all subsections."""

    edit: EditConfig = field(default_factory=EditConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global configuration instance
_global_config: Optional[EditorConfig] = None

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _type_errors(config: EditorConfig) -> List[str]:
    """Check every value against the type of its default."""
    errors = []
    defaults = EditorConfig()
    for section_name in ("edit", "security", "logging"):
        section = getattr(config, section_name)
        default_section = getattr(defaults, section_name)
        for config_field in fields(section):
            value = getattr(section, config_field.name)
            expected = type(getattr(default_section, config_field.name))
            if not isinstance(value, expected) or (
                expected is int and isinstance(value, bool)
            ):
                errors.append(
                    f"{section_name}.{config_field.name} must be of type {expected.__name__}"
                )
            elif expected is list and not all(isinstance(item, str) for item in value):
                errors.append(f"{section_name}.{config_field.name} must be a list of strings")
    return errors


def validate_config_values(config: EditorConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = _type_errors(config)
    mistyped = {error.split(".", 1)[0] for error in errors}

    if "edit" not in mistyped:
        if not config.edit.default_pom:
            errors.append("edit.default_pom must not be empty")
        if not config.edit.default_type:
            errors.append("edit.default_type must not be empty")
        elif not is_valid_token(config.edit.default_type):
            errors.append(
                "edit.default_type may only contain letters, digits, '.', '-' and '_'"
            )
        if not config.edit.backup_suffix:
            errors.append("edit.backup_suffix must not be empty")
        elif "/" in config.edit.backup_suffix or "\\" in config.edit.backup_suffix:
            errors.append("edit.backup_suffix must not contain path separators")
        if config.edit.indent.strip(" \t"):
            errors.append("edit.indent must contain only spaces or tabs")

    if "security" not in mistyped:
        if config.security.max_file_size_mb <= 0:
            errors.append("security.max_file_size_mb must be positive")
        if not config.security.allowed_file_extensions:
            errors.append("security.allowed_file_extensions must not be empty")

    if "logging" not in mistyped and config.logging.log_level.upper() not in _LOG_LEVELS:
        errors.append(
            f"logging.log_level must be one of {', '.join(sorted(_LOG_LEVELS))}"
        )

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                if HAS_YAML:
                    return yaml.safe_load(f)
                console.print(
                    "⚠️  PyYAML not installed, skipping YAML config", style="yellow"
                )
                return None
            if config_path.suffix.lower() == ".json":
                return json.load(f)
    except Exception as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".pom-editor.json",
        Path.cwd() / ".pom-editor.yaml",
        Path.cwd() / ".pom-editor.yml",
        Path.home() / ".config" / "pom-editor" / "config.json",
        Path.home() / ".config" / "pom-editor" / "config.yaml",
        Path.home() / ".pom-editor.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: EditorConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str, default: Optional[int] = None) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else default
        except ValueError:
            console.print(
                f"⚠️  Invalid integer value for {key}, using default", style="yellow"
            )
            return default

    if default_pom := os.environ.get("POM_EDITOR_DEFAULT_POM"):
        config.edit.default_pom = default_pom
    if default_type := os.environ.get("POM_EDITOR_DEFAULT_TYPE"):
        config.edit.default_type = default_type
    if backup_suffix := os.environ.get("POM_EDITOR_BACKUP_SUFFIX"):
        config.edit.backup_suffix = backup_suffix
    config.edit.keep_backup_on_rollback = get_env_bool(
        "POM_EDITOR_KEEP_BACKUP", config.edit.keep_backup_on_rollback
    )

    if max_file_size := get_env_int("POM_EDITOR_MAX_FILE_SIZE_MB"):
        config.security.max_file_size_mb = max_file_size

    if log_level := os.environ.get("POM_EDITOR_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    if not isinstance(section_data, dict):
        console.print(
            f"⚠️  Config section {section_name} must be a mapping, ignoring it",
            style="yellow",
        )
        return
    for key, value in section_data.items():
        if key in {config_field.name for config_field in fields(config)}:
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def load_config() -> EditorConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = EditorConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if isinstance(file_config, dict):
            for section_name in ("edit", "security", "logging"):
                if section_name in file_config:
                    apply_config_section(
                        getattr(config, section_name),
                        file_config[section_name],
                        section_name,
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        config = _replace_invalid_sections(config, validation_errors)

    _global_config = config
    return config


def _replace_invalid_sections(
    config: EditorConfig, validation_errors: List[str]
) -> EditorConfig:
    """Reset every section that produced a validation error to its defaults."""
    defaults = EditorConfig()
    broken = {error.split(".", 1)[0] for error in validation_errors}
    for section_name in broken:
        if hasattr(defaults, section_name):
            setattr(config, section_name, getattr(defaults, section_name))
    return config


def get_config() -> EditorConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample configuration."""
    sample_config = {
        "edit": {
            "default_pom": "pom.xml",
            "default_type": "jar",
            "backup_suffix": ".backup",
            "keep_backup_on_rollback": False,
            "indent": "    ",
        },
        "security": {
            "max_file_size_mb": 10,
            "allowed_file_extensions": [".xml"],
        },
        "logging": {
            "log_level": "WARNING",
            "enable_json": True,
        },
    }

    return json.dumps(sample_config, indent=2)
