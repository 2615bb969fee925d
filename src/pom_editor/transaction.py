"""
Backup/rollback transactions around a single file edit.

A transaction takes a backup of the target, runs one mutation and either
discards the backup (commit) or restores the target from it (rollback).
Backup, rollback, cleanup and logging are pluggable strategies; the
defaults copy the file to a sibling ``<name><suffix>`` path.
"""

import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, TypeVar

from .error_handling import (
    BackupFailed,
    ErrorCategory,
    MutationFailed,
    RollbackFailed,
    TransactionError,
    get_error_handler,
    log_transaction_failure,
)
from .structured_logging import log_transaction_event

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_SUFFIX = ".backup"

BackupFunction = Callable[[Path], bool]
RollbackFunction = Callable[[Path], None]
CleanupFunction = Callable[[Path], None]
LogSink = Callable[[str], None]

T = TypeVar("T")


class TransactionState(Enum):
    IDLE = "idle"
    BACKED_UP = "backed_up"
    MUTATING = "mutating"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"
    ROLLBACK_FAILED = "rollback_failed"

    @property
    def terminal(self) -> bool:
        return self in (
            TransactionState.COMMITTED,
            TransactionState.ROLLED_BACK,
            TransactionState.ABORTED,
            TransactionState.ROLLBACK_FAILED,
        )


def backup_path_for(target: Path, suffix: str = DEFAULT_BACKUP_SUFFIX) -> Path:
    return target.with_name(target.name + suffix)


def copy_backup(suffix: str = DEFAULT_BACKUP_SUFFIX) -> BackupFunction:
    """Backup strategy: copy the target next to itself."""

    def backup(target: Path) -> bool:
        if not target.is_file():
            return False
        shutil.copy2(target, backup_path_for(target, suffix))
        return True

    return backup


def restore_backup(
    suffix: str = DEFAULT_BACKUP_SUFFIX, keep_backup: bool = False
) -> RollbackFunction:
    """
    Rollback strategy: copy the backup over the target, then drop it.

    The backup is deleted after a successful restore unless ``keep_backup``
    is set (``edit.keep_backup_on_rollback`` / ``POM_EDITOR_KEEP_BACKUP``),
    which leaves it behind as evidence of the failed edit.
    """

    def rollback(target: Path) -> None:
        backup = backup_path_for(target, suffix)
        shutil.copyfile(backup, target)
        if not keep_backup:
            backup.unlink()

    return rollback


def discard_backup(suffix: str = DEFAULT_BACKUP_SUFFIX) -> CleanupFunction:
    """Cleanup strategy: delete the backup if it is still there."""

    def cleanup(target: Path) -> None:
        backup_path_for(target, suffix).unlink(missing_ok=True)

    return cleanup


class FileTransaction:
    """
    One safe edit of one file.

    Build it with :meth:`builder` and run it once with :meth:`execute`.
    Every run ends in exactly one terminal state: ``COMMITTED``,
    ``ROLLED_BACK``, ``ABORTED`` (backup failed, nothing was touched) or
    ``ROLLBACK_FAILED``.
    """

    def __init__(
        self,
        target: Path,
        backup_function: BackupFunction,
        rollback_function: RollbackFunction,
        cleanup_function: CleanupFunction,
        log: LogSink,
        subject: Optional[str] = None,
        backup_path: Optional[Path] = None,
    ):
        self.target = target
        self.subject = subject
        self.backup_path = backup_path
        self._backup = backup_function
        self._rollback = rollback_function
        self._cleanup = cleanup_function
        self._log = log
        self._state = TransactionState.IDLE

    @staticmethod
    def builder() -> "TransactionBuilder":
        return TransactionBuilder()

    @property
    def state(self) -> TransactionState:
        return self._state

    def _enter(self, state: TransactionState, **details) -> None:
        self._state = state
        log_transaction_event(state.value, str(self.target), **details)

    def execute(self, mutation: Callable[[], T]) -> T:
        """
        Run ``mutation`` between a backup and a commit or rollback.

        Raises:
            TransactionError: if the transaction was already executed
            BackupFailed: if no backup could be taken; nothing was mutated
            MutationFailed: if the mutation raised; the target was restored
            RollbackFailed: if the mutation raised and restoring failed too
        """
        if self._state is not TransactionState.IDLE:
            raise TransactionError(
                f'transaction on "{self.target}" was already executed '
                f"(state: {self._state.value})",
                self.target,
            )

        self._log(f'backing up "{self.target}"...')
        self._take_backup()

        self._enter(TransactionState.MUTATING)
        try:
            result = mutation()
        except Exception as exc:
            self._roll_back(exc)
            self._log(f'changes to "{self.target}" were rolled back')
            raise MutationFailed(self.target, self.subject, exc) from exc
        except BaseException as exc:
            self._roll_back(exc)
            raise

        self._commit()
        return result

    def _take_backup(self) -> None:
        try:
            created = self._backup(self.target)
        except Exception as exc:
            self._enter(TransactionState.ABORTED, reason=str(exc))
            raise BackupFailed(self.target, exc) from exc
        if not created:
            self._enter(TransactionState.ABORTED, reason="backup not created")
            raise BackupFailed(self.target)
        self._enter(TransactionState.BACKED_UP)

    def _roll_back(self, cause: BaseException) -> None:
        self._log(f'rolling back "{self.target}": {cause}')
        log_transaction_failure(
            f"Mutation of {self.target.name} failed, rolling back",
            "execute",
            self.target,
            cause,
        )
        try:
            self._rollback(self.target)
        except Exception as rollback_exc:
            self._enter(TransactionState.ROLLBACK_FAILED, reason=str(rollback_exc))
            log_transaction_failure(
                f"Rollback of {self.target.name} failed",
                "execute",
                self.target,
                rollback_exc,
                critical=True,
                backup_path=self.backup_path,
            )
            raise RollbackFailed(
                self.target, cause, rollback_exc, self.backup_path
            ) from rollback_exc
        self._enter(TransactionState.ROLLED_BACK, reason=str(cause))

    def _commit(self) -> None:
        try:
            self._cleanup(self.target)
        except Exception as exc:
            # Cleanup failures after commit are reported, not raised
            get_error_handler().warning(
                ErrorCategory.FILESYSTEM,
                f"Could not remove the backup of {self.target.name}",
                "transaction",
                "execute",
                exception=exc,
                details={"backup_path": str(self.backup_path)},
            )
        self._enter(TransactionState.COMMITTED)
        self._log(f'changes to "{self.target}" committed')


class TransactionBuilder:
    """Collects the collaborators of a :class:`FileTransaction`."""

    def __init__(self):
        self._target: Optional[Path] = None
        self._backup_function: Optional[BackupFunction] = None
        self._rollback_function: Optional[RollbackFunction] = None
        self._cleanup_function: Optional[CleanupFunction] = None
        self._log: Optional[LogSink] = None
        self._subject: Optional[str] = None
        self._backup_suffix = DEFAULT_BACKUP_SUFFIX
        self._keep_backup_on_rollback = False

    def with_target(self, target) -> "TransactionBuilder":
        self._target = Path(target)
        return self

    # Maven-flavoured alias, the target is almost always a pom.xml
    with_pom = with_target

    def with_backup_function(self, backup_function: Optional[BackupFunction]) -> "TransactionBuilder":
        self._backup_function = backup_function
        return self

    def with_rollback_function(self, rollback_function: Optional[RollbackFunction]) -> "TransactionBuilder":
        self._rollback_function = rollback_function
        return self

    def with_cleanup_function(self, cleanup_function: Optional[CleanupFunction]) -> "TransactionBuilder":
        self._cleanup_function = cleanup_function
        return self

    def with_logger(self, log: Optional[LogSink]) -> "TransactionBuilder":
        self._log = log
        return self

    def with_subject(self, subject: Optional[str]) -> "TransactionBuilder":
        self._subject = subject
        return self

    def with_backup_suffix(self, suffix: str) -> "TransactionBuilder":
        if not suffix:
            raise ValueError("backup suffix must not be empty")
        self._backup_suffix = suffix
        return self

    def keep_backup_on_rollback(self, keep: bool = True) -> "TransactionBuilder":
        self._keep_backup_on_rollback = keep
        return self

    def build(self) -> FileTransaction:
        if self._target is None:
            raise ValueError("a transaction needs a target file")

        suffix = self._backup_suffix
        return FileTransaction(
            target=self._target,
            backup_function=self._backup_function or copy_backup(suffix),
            rollback_function=self._rollback_function
            or restore_backup(suffix, self._keep_backup_on_rollback),
            cleanup_function=self._cleanup_function or discard_backup(suffix),
            log=self._log or logger.info,
            subject=self._subject,
            backup_path=backup_path_for(self._target, suffix),
        )
