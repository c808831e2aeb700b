"""
Error handling for gomod-importer.

Every fatal failure of an import run is reported through the central
ErrorHandler and then raised as a single ModuleImportError naming the step
that failed. Non-fatal skips go through the same handler as warnings.
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories, one per step of an import run plus the ambient ones."""

    SETUP = "SETUP"  # locating manifests, building the snapshot
    EXTRACTION = "EXTRACTION"  # go list -m -json all
    LEDGER = "LEDGER"  # reading go.sum
    BACKFILL = "BACKFILL"  # go mod download -json
    SYNTHESIS = "SYNTHESIS"  # building declarations
    CONFIGURATION = "CONFIGURATION"


class ModuleImportError(Exception):
    """Terminal error of an import run."""

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        self.category = category
        self.message = message
        self.cause = cause
        super().__init__(str(self))

    @property
    def step(self) -> str:
        return self.category.value.lower()

    def __str__(self) -> str:
        text = f"{self.step}: {self.message}"
        if self.cause is not None:
            text += f": {self.cause}"
        return text


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


class SecureLogger:
    """Logger that masks credentials before they reach the log stream.

    GOPROXY and GOPRIVATE settings routinely carry tokens inside URLs, and the
    go tool echoes them back in error messages.
    """

    SENSITIVE_PATTERNS = [
        (r"(https?://[^@\s/]+:)[^@\s]+@", r"\1[REDACTED]@"),
        (r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', 'token="[REDACTED]"'),
        (r'password["\s]*[:=]["\s]*([^\s"\']+)', 'password="[REDACTED]"'),
        (r"Authorization:\s*\w+\s+([^\s]+)", "Authorization: [REDACTED]"),
    ]
    SENSITIVE_KEYS = {"token", "password", "secret", "credential", "auth"}

    def __init__(
        self, name: str, level: int = logging.WARNING, mask_sensitive: bool = True
    ):
        """
        Initialize secure logger.

        Args:
            name: Logger name
            level: Logging level
            mask_sensitive: Whether to redact credentials
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.mask_sensitive = mask_sensitive

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def _sanitize_message(self, message: str) -> str:
        if not self.mask_sensitive:
            return message

        sanitized = message
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def _sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        sanitized = {}
        for key, value in data.items():
            if self.mask_sensitive and any(
                sensitive in key.lower() for sensitive in self.SENSITIVE_KEYS
            ):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, str):
                sanitized[key] = self._sanitize_message(value)
            else:
                sanitized[key] = value
        return sanitized

    def log_error_context(self, context: ErrorContext):
        """
        Log error context with appropriate level.

        Args:
            context: Error context to log
        """
        log_data = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": self._sanitize_dict(context.details),
        }

        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        log_message = f"{self._sanitize_message(context.message)} | {log_data}"
        self.logger.log(getattr(logging, context.level.value), log_message)


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized error handler.

    Logs every reported problem, keeps per-category statistics and lets
    callers subscribe to problems of a given category.
    """

    def __init__(
        self,
        logger_name: str = "gomod_importer",
        log_level: int = logging.WARNING,
        enable_callbacks: bool = True,
        mask_sensitive: bool = True,
    ):
        self.logger = SecureLogger(logger_name, log_level, mask_sensitive)
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
                "".join(traceback.format_exception(exception)) if exception else None
            ),
            suggestions=suggestions or [],
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            callbacks = self.error_callbacks.get(category, []) + self.global_callbacks
            for callback in callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    # A broken subscriber must not mask the reported error
                    self.logger.logger.error(f"Error in callback: {cb_error}")

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

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_stats.copy()

    def reset_stats(self):
        """Reset error statistics."""
        self.error_stats.clear()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    enable_callbacks: bool = True,
    logger_name: str = "gomod_importer",
    mask_sensitive: bool = True,
) -> ErrorHandler:
    """
    Setup global error handling configuration.

    Returns:
        ErrorHandler: Configured error handler
    """
    global _global_error_handler
    _global_error_handler = ErrorHandler(
        logger_name, log_level, enable_callbacks, mask_sensitive
    )
    return _global_error_handler


def fail(
    category: ErrorCategory,
    message: str,
    module: str,
    function: str,
    cause: Optional[BaseException] = None,
    details: Optional[Dict[str, Any]] = None,
    suggestions: Optional[List[str]] = None,
) -> ModuleImportError:
    """
    Report a fatal error and build the exception to raise for it.

    Usage: ``raise fail(ErrorCategory.SETUP, "...", "manifests", "fn", e) from e``
    """
    get_error_handler().error(
        category,
        message,
        module,
        function,
        exception=cause,
        details=details,
        suggestions=suggestions,
    )
    return ModuleImportError(category, message, cause)


def log_skipped_module(
    message: str,
    function: str,
    category: ErrorCategory,
    details: Optional[Dict[str, Any]] = None,
    suggestions: Optional[List[str]] = None,
) -> ErrorContext:
    """Report a module that is left out of the output without failing the run."""
    return get_error_handler().warning(
        category,
        message,
        "importer",
        function,
        details=details,
        suggestions=suggestions,
    )
