"""
Add-dependency entry point.

Resolves the options of one invocation into a :class:`Dependency`, then runs
the insert-or-upgrade inside a :class:`FileTransaction` so a failed edit
leaves the POM as it was.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .add_dependency import ChangeAction, DependencyChange, add_dependency
from .cli_config import EditorConfig, get_config
from .dependency import Dependency, DependencyBuilder
from .error_handling import AddDependencyError, TransactionError
from .structured_logging import clear_edit_context, set_edit_context
from .transaction import (
    BackupFunction,
    CleanupFunction,
    FileTransaction,
    LogSink,
    RollbackFunction,
    copy_backup,
    discard_backup,
    restore_backup,
)

logger = logging.getLogger(__name__)

AddDependencyCommand = Callable[[Path, Dependency], DependencyChange]


@dataclass(frozen=True)
class AddDependencyOptions:
    """Everything one add-dependency invocation needs to know."""

    gav: Optional[str]
    type: Optional[str] = None
    classifier: Optional[str] = None
    scope: Optional[str] = None
    pom: Optional[str] = None


@dataclass
class EditorCollaborators:
    """The strategies an edit runs with; see :meth:`from_config` for defaults."""

    backup_function: BackupFunction
    rollback_function: RollbackFunction
    cleanup_function: CleanupFunction
    command: AddDependencyCommand = add_dependency
    log: LogSink = logger.info

    @classmethod
    def from_config(
        cls, config: Optional[EditorConfig] = None, log: Optional[LogSink] = None
    ) -> "EditorCollaborators":
        config = config or get_config()
        suffix = config.edit.backup_suffix
        return cls(
            backup_function=copy_backup(suffix),
            rollback_function=restore_backup(
                suffix, config.edit.keep_backup_on_rollback
            ),
            cleanup_function=discard_backup(suffix),
            log=log or logger.info,
        )


def build_dependency(
    options: AddDependencyOptions, config: Optional[EditorConfig] = None
) -> Dependency:
    """
    Build the dependency described by ``options``.

    Raises:
        DependencyError: before any file is touched, if the identifier or an
            attribute is malformed
    """
    config = config or get_config()
    return (
        DependencyBuilder(options.gav, config.edit.default_type)
        .set_type(options.type)
        .set_classifier(options.classifier)
        .set_scope(options.scope)
        .build()
    )


def run_add_dependency(
    options: AddDependencyOptions,
    collaborators: Optional[EditorCollaborators] = None,
    config: Optional[EditorConfig] = None,
) -> DependencyChange:
    """
    Add or upgrade one dependency in a POM, transactionally.

    Raises:
        DependencyError: the options do not describe a valid dependency
        AddDependencyError: the edit failed; ``cause`` holds the
            transaction error (``BackupFailed``, ``MutationFailed`` or
            ``RollbackFailed``)
    """
    config = config or get_config()
    collaborators = collaborators or EditorCollaborators.from_config(config)

    pom_file = Path(options.pom or config.edit.default_pom)
    dependency = build_dependency(options, config)

    set_edit_context(str(pom_file), dependency.coordinates)
    try:
        collaborators.log(
            f'trying to add the dependency: {dependency} to the "{pom_file}" file...'
        )
        transaction = _transaction_for(pom_file, dependency, collaborators, config)
        try:
            change = transaction.execute(
                lambda: collaborators.command(pom_file, dependency)
            )
        except TransactionError as e:
            raise AddDependencyError(dependency, pom_file, e) from e

        collaborators.log(_describe(change, pom_file))
        return change
    finally:
        clear_edit_context()


def _transaction_for(
    pom_file: Path,
    dependency: Dependency,
    collaborators: EditorCollaborators,
    config: EditorConfig,
) -> FileTransaction:
    return (
        FileTransaction.builder()
        .with_logger(collaborators.log)
        .with_pom(pom_file)
        .with_subject(str(dependency))
        .with_backup_suffix(config.edit.backup_suffix)
        .with_backup_function(collaborators.backup_function)
        .with_rollback_function(collaborators.rollback_function)
        .with_cleanup_function(collaborators.cleanup_function)
        .build()
    )


def _describe(change: DependencyChange, pom_file: Path) -> str:
    dependency = change.dependency
    if change.action is ChangeAction.ADDED:
        return f'added the dependency: {dependency} to the "{pom_file}" file.'
    if change.action is ChangeAction.UPGRADED:
        return (
            f"upgraded the dependency: {dependency} "
            f'(was {change.previous_version}) in the "{pom_file}" file.'
        )
    return (
        f'the dependency: {dependency} is already declared in the "{pom_file}" file'
        f" ({change.reason}); nothing to do."
    )
