"""
Backup/rollback transaction tests.
"""

from unittest.mock import Mock

import pytest

from src.pom_editor.error_handling import (
    BackupFailed,
    ErrorCategory,
    ErrorLevel,
    MutationFailed,
    RollbackFailed,
    TransactionError,
    get_error_handler,
)
from src.pom_editor.transaction import (
    FileTransaction,
    TransactionState,
    backup_path_for,
)

ORIGINAL = b"<project>\r\n  <artifactId>original</artifactId>\r\n</project>\r\n"


@pytest.fixture
def target(temp_dir):
    path = temp_dir / "pom.xml"
    path.write_bytes(ORIGINAL)
    return path


def _transaction(target, **overrides):
    builder = FileTransaction.builder().with_pom(target)
    for name, value in overrides.items():
        getattr(builder, f"with_{name}")(value)
    return builder.build()


class TestCommit:
    """Test the successful path."""

    def test_commit_keeps_changes_and_drops_backup(self, target):
        transaction = _transaction(target)

        result = transaction.execute(lambda: target.write_text("changed") and "done")

        assert result == "done"
        assert target.read_text() == "changed"
        assert not backup_path_for(target).exists()
        assert transaction.state is TransactionState.COMMITTED
        assert transaction.state.terminal

    def test_backup_exists_while_mutating(self, target):
        seen = []
        transaction = _transaction(target)

        transaction.execute(lambda: seen.append(backup_path_for(target).read_bytes()))

        assert seen == [ORIGINAL]

    def test_log_sink_receives_progress(self, target):
        messages = []
        transaction = _transaction(target, logger=messages.append)

        transaction.execute(lambda: None)

        assert messages[0] == f'backing up "{target}"...'
        assert messages[-1] == f'changes to "{target}" committed'

    def test_cleanup_failure_still_commits(self, target):
        warnings = []
        get_error_handler().register_callback(warnings.append, ErrorCategory.FILESYSTEM)
        cleanup = Mock(side_effect=OSError("read-only directory"))
        transaction = _transaction(target, cleanup_function=cleanup)

        transaction.execute(lambda: target.write_text("changed"))

        assert transaction.state is TransactionState.COMMITTED
        assert target.read_text() == "changed"
        cleanup.assert_called_once_with(target)
        assert len(warnings) == 1
        assert warnings[0].level == ErrorLevel.WARNING

    def test_custom_collaborators_are_used(self, target):
        backup = Mock(return_value=True)
        rollback = Mock()
        cleanup = Mock()
        transaction = _transaction(
            target,
            backup_function=backup,
            rollback_function=rollback,
            cleanup_function=cleanup,
        )

        transaction.execute(lambda: None)

        backup.assert_called_once_with(target)
        cleanup.assert_called_once_with(target)
        rollback.assert_not_called()


class TestRollback:
    """Test that a failed mutation leaves the target as it was."""

    def test_failed_mutation_restores_bytes(self, target):
        cause = RuntimeError("boom")

        def mutation():
            target.write_text("half written")
            raise cause

        transaction = _transaction(target, subject="org.example:lib:1.0")

        with pytest.raises(MutationFailed) as exc_info:
            transaction.execute(mutation)

        assert target.read_bytes() == ORIGINAL
        assert not backup_path_for(target).exists()
        assert transaction.state is TransactionState.ROLLED_BACK
        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause
        assert "org.example:lib:1.0" in str(exc_info.value)
        assert "boom" in str(exc_info.value)

    def test_deleted_target_is_restored(self, target):
        def mutation():
            target.unlink()
            raise OSError("disk full")

        transaction = _transaction(target)

        with pytest.raises(MutationFailed):
            transaction.execute(mutation)

        assert target.read_bytes() == ORIGINAL

    def test_rollback_is_reported(self, target):
        reports = []
        get_error_handler().register_callback(reports.append, ErrorCategory.TRANSACTION)
        transaction = _transaction(target)

        with pytest.raises(MutationFailed):
            transaction.execute(Mock(side_effect=ValueError("bad")))

        assert [r.level for r in reports] == [ErrorLevel.ERROR]
        assert reports[0].details["target"] == str(target)

    def test_keep_backup_on_rollback(self, target):
        transaction = FileTransaction.builder().with_target(target).keep_backup_on_rollback().build()

        with pytest.raises(MutationFailed):
            transaction.execute(Mock(side_effect=ValueError("bad")))

        assert target.read_bytes() == ORIGINAL
        assert backup_path_for(target).read_bytes() == ORIGINAL

    def test_interrupt_rolls_back_and_propagates(self, target):
        """Test that non-Exception errors roll back and are re-raised as is."""

        def mutation():
            target.write_text("half written")
            raise KeyboardInterrupt()

        transaction = _transaction(target)

        with pytest.raises(KeyboardInterrupt):
            transaction.execute(mutation)

        assert target.read_bytes() == ORIGINAL
        assert transaction.state is TransactionState.ROLLED_BACK

    def test_rollback_failure(self, target):
        """Test the double failure: mutation and rollback both raise."""
        reports = []
        get_error_handler().register_callback(reports.append, ErrorCategory.TRANSACTION)
        rollback = Mock(side_effect=OSError("permission denied"))
        transaction = _transaction(target, rollback_function=rollback)

        with pytest.raises(RollbackFailed) as exc_info:
            transaction.execute(Mock(side_effect=ValueError("bad")))

        assert transaction.state is TransactionState.ROLLBACK_FAILED
        assert isinstance(exc_info.value.mutation_error, ValueError)
        assert isinstance(exc_info.value.rollback_error, OSError)
        assert exc_info.value.backup_path == backup_path_for(target)
        assert backup_path_for(target).read_bytes() == ORIGINAL
        assert reports[-1].level == ErrorLevel.CRITICAL

    def test_failures_are_counted(self, target):
        handler = get_error_handler()
        transaction = _transaction(target, rollback_function=Mock(side_effect=OSError("denied")))

        with pytest.raises(RollbackFailed):
            transaction.execute(Mock(side_effect=ValueError("bad")))

        assert handler.get_error_stats() == {"TRANSACTION_ERROR": 1, "TRANSACTION_CRITICAL": 1}
        handler.reset_stats()
        assert handler.get_error_stats() == {}

    def test_unregistered_callback_is_not_called(self, target):
        handler = get_error_handler()
        callback = Mock()
        handler.register_callback(callback, ErrorCategory.TRANSACTION)
        handler.register_callback(callback)
        handler.unregister_callback(callback)

        with pytest.raises(MutationFailed):
            _transaction(target).execute(Mock(side_effect=ValueError("bad")))

        callback.assert_not_called()
        assert handler.get_error_stats() == {"TRANSACTION_ERROR": 1}


class TestAbort:
    """Test that nothing runs without a backup."""

    def test_backup_not_created(self, target):
        mutation = Mock()
        transaction = _transaction(target, backup_function=Mock(return_value=False))

        with pytest.raises(BackupFailed):
            transaction.execute(mutation)

        mutation.assert_not_called()
        assert transaction.state is TransactionState.ABORTED
        assert target.read_bytes() == ORIGINAL

    def test_backup_raises(self, target):
        mutation = Mock()
        cause = PermissionError("no write access")
        transaction = _transaction(target, backup_function=Mock(side_effect=cause))

        with pytest.raises(BackupFailed) as exc_info:
            transaction.execute(mutation)

        mutation.assert_not_called()
        assert exc_info.value.cause is cause
        assert transaction.state is TransactionState.ABORTED

    def test_missing_target(self, temp_dir):
        mutation = Mock()
        transaction = _transaction(temp_dir / "missing.xml")

        with pytest.raises(BackupFailed):
            transaction.execute(mutation)

        mutation.assert_not_called()


class TestLifecycle:
    """Test builder validation and single use."""

    def test_execute_only_once(self, target):
        transaction = _transaction(target)
        transaction.execute(lambda: None)

        with pytest.raises(TransactionError, match="already executed"):
            transaction.execute(lambda: None)

    def test_failed_transaction_cannot_be_retried(self, target):
        transaction = _transaction(target, backup_function=Mock(return_value=False))
        with pytest.raises(BackupFailed):
            transaction.execute(lambda: None)

        with pytest.raises(TransactionError, match="already executed"):
            transaction.execute(lambda: None)

    def test_builder_requires_target(self):
        with pytest.raises(ValueError, match="target"):
            FileTransaction.builder().build()

    def test_initial_state(self, target):
        transaction = _transaction(target)

        assert transaction.state is TransactionState.IDLE
        assert not transaction.state.terminal

    def test_custom_backup_suffix(self, target):
        seen = []
        transaction = FileTransaction.builder().with_target(target).with_backup_suffix(".orig").build()

        transaction.execute(lambda: seen.append(target.with_name("pom.xml.orig").exists()))

        assert seen == [True]
        assert transaction.backup_path == target.with_name("pom.xml.orig")
        assert not target.with_name("pom.xml.orig").exists()

    def test_empty_backup_suffix_rejected(self):
        with pytest.raises(ValueError):
            FileTransaction.builder().with_backup_suffix("")
