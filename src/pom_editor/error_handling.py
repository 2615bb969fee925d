"""
Error handling for pom-editor.

Provides the exception hierarchy raised by the editor, plus structured error
reporting with callbacks so library users can observe rollbacks and other
failures without parsing log output.
"""

import logging
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .structured_logging import StderrHandler


class PomEditorError(Exception):
    """Base class for every error raised by pom-editor."""


class DependencyError(PomEditorError, ValueError):
    """A dependency descriptor could not be built from the given input."""


class InvalidIdentifierFormat(DependencyError):
    """The identifier is not ``group:artifact:version`` with non-empty parts."""

    def __init__(self, identifier: Optional[str]):
        self.identifier = identifier
        super().__init__(
            f'invalid dependency identifier "{identifier}": '
            "expected <groupId>:<artifactId>:<version>"
        )


class InvalidDependencyAttribute(DependencyError):
    """An optional attribute (type, classifier, scope) has a malformed value."""

    def __init__(self, attribute: str, value: str, reason: str):
        self.attribute = attribute
        self.value = value
        super().__init__(f'invalid {attribute} "{value}": {reason}')


class ManifestError(PomEditorError):
    """The target manifest is missing, unreadable or not a valid POM."""


class TransactionError(PomEditorError):
    """Base class for failures of a file transaction."""

    def __init__(self, message: str, target: Optional[Path] = None):
        self.target = target
        super().__init__(message)


class BackupFailed(TransactionError):
    """The backup could not be taken, so the mutation never ran."""

    def __init__(self, target: Path, cause: Optional[BaseException] = None):
        self.cause = cause
        message = f'cannot back up "{target}"'
        if cause is not None:
            message += f": {cause}"
        super().__init__(message, target)


class MutationFailed(TransactionError):
    """The mutation raised; the target was restored from its backup."""

    def __init__(self, target: Path, subject: Optional[str], cause: BaseException):
        self.subject = subject
        self.cause = cause
        what = f"change {subject}" if subject else "change"
        super().__init__(
            f'cannot apply the {what} to "{target}" (rolled back): {cause}', target
        )


class RollbackFailed(TransactionError):
    """Restoring the target after a failed mutation failed as well."""

    def __init__(
        self,
        target: Path,
        mutation_error: BaseException,
        rollback_error: BaseException,
        backup_path: Optional[Path] = None,
    ):
        self.mutation_error = mutation_error
        self.rollback_error = rollback_error
        self.backup_path = backup_path
        message = (
            f'rollback of "{target}" failed after "{mutation_error}": '
            f"{rollback_error}; the file may be inconsistent"
        )
        if backup_path is not None:
            message += f", original content is kept in {backup_path}"
        super().__init__(message, target)


class AddDependencyError(PomEditorError):
    """Adding a dependency to a POM failed."""

    def __init__(self, dependency: Any, pom: Path, cause: BaseException):
        self.dependency = dependency
        self.pom = pom
        self.cause = cause
        super().__init__(
            f'cannot add the dependency: {dependency} to the "{pom}" file: {cause}'
        )


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    PARSING = "PARSING"
    VALIDATION = "VALIDATION"
    FILESYSTEM = "FILESYSTEM"
    CONFIGURATION = "CONFIGURATION"
    TRANSACTION = "TRANSACTION"


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    traceback_info: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging."""
        return {
            "level": self.level.value,
            "category": self.category.value,
            "message": self.message,
            "module": self.module,
            "function": self.function,
            "details": self.details,
            "exception_type": type(self.exception).__name__ if self.exception else None,
            "exception_message": str(self.exception) if self.exception else None,
            "traceback": self.traceback_info,
            "suggestions": self.suggestions,
        }


class ErrorLogger:
    """Routes error contexts to a standard library logger."""

    def __init__(self, name: str, level: int = logging.WARNING):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = StderrHandler()
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def log_error_context(self, context: ErrorContext):
        """Log error context with appropriate level."""
        log_data = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": context.details,
        }
        if context.exception:
            log_data["exception"] = type(context.exception).__name__
        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        level = getattr(logging, context.level.value)
        self.logger.log(level, f"{context.message} | {log_data}")


# Error callback type
ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized error handler for consistent error management.

    Provides logging, callbacks, and structured error handling
    for library components.
    """

    def __init__(
        self,
        logger_name: str = "pom_editor.errors",
        log_level: int = logging.WARNING,
        enable_callbacks: bool = True,
    ):
        """
        Initialize error handler.

        Args:
            logger_name: Name for the logger
            log_level: Logging level
            enable_callbacks: Whether to enable error callbacks
        """
        self.logger = ErrorLogger(logger_name, log_level)
        self.enable_callbacks = enable_callbacks
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []
        self.error_stats: Dict[str, int] = {}

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ):
        """
        Register error callback.

        Args:
            callback: Function to call on errors
            category: Error category to filter, None for all errors
        """
        if not self.enable_callbacks:
            return

        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def unregister_callback(self, callback: ErrorCallback):
        """Remove a callback from every category it was registered for."""
        if callback in self.global_callbacks:
            self.global_callbacks.remove(callback)
        for callbacks in self.error_callbacks.values():
            if callback in callbacks:
                callbacks.remove(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        """
        Handle an error with structured logging and callbacks.

        Args:
            level: Error severity level
            category: Error category
            message: Error message
            module: Module where error occurred
            function: Function where error occurred
            exception: Optional exception object
            details: Additional error details
            suggestions: Suggested fixes

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=(
                "".join(traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                ))
                if exception
                else None
            ),
            suggestions=suggestions or [],
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            for callback in self.error_callbacks.get(category, []):
                try:
                    callback(context)
                except Exception as cb_error:
                    # A broken observer must not mask the original failure
                    self.logger.logger.error(f"Error in callback: {cb_error}")

            for callback in self.global_callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    self.logger.logger.error(f"Error in global callback: {cb_error}")

        return context

    def warning(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(
            ErrorLevel.WARNING, category, message, module, function, **kwargs
        )

    def error(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )

    def critical(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        """Handle critical level error."""
        return self.handle_error(
            ErrorLevel.CRITICAL, category, message, module, function, **kwargs
        )

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_stats.copy()

    def reset_stats(self):
        """Reset error statistics."""
        self.error_stats.clear()


# Global error handler instance
_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """
    Get the global error handler instance.

    Returns:
        ErrorHandler: Global error handler
    """
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    enable_callbacks: bool = True,
    logger_name: str = "pom_editor.errors",
) -> ErrorHandler:
    """
    Setup global error handling configuration.

    Args:
        log_level: Logging level
        enable_callbacks: Whether to enable callbacks
        logger_name: Logger name

    Returns:
        ErrorHandler: Configured error handler
    """
    global _global_error_handler
    _global_error_handler = ErrorHandler(logger_name, log_level, enable_callbacks)
    return _global_error_handler


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[Exception] = None,
):
    """
    Convenience function for logging manifest parsing errors.

    Args:
        message: Error message
        module: Module name
        function: Function name
        file_path: File being parsed
        exception: Optional exception
    """
    details = {}
    if file_path is not None:
        details["file_path"] = Path(file_path).name

    get_error_handler().error(
        ErrorCategory.PARSING,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Check that the file is well-formed XML",
            "Verify the root element is <project>",
        ],
    )


def log_transaction_failure(
    message: str,
    function: str,
    target: Path,
    exception: BaseException,
    critical: bool = False,
    backup_path: Optional[Path] = None,
):
    """
    Report a failed transaction step.

    Rollbacks are reported at ERROR; a failed rollback is a double failure
    and goes out at CRITICAL.
    """
    details: Dict[str, Any] = {"target": str(target)}
    suggestions = []
    if backup_path is not None:
        details["backup_path"] = str(backup_path)
        suggestions.append(f"Restore the file manually from {backup_path}")

    handler = get_error_handler()
    report = handler.critical if critical else handler.error
    report(
        ErrorCategory.TRANSACTION,
        message,
        "transaction",
        function,
        details=details,
        exception=exception,
        suggestions=suggestions,
    )
