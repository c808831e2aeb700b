"""
Structured logging for gomod-importer.

Events are emitted as JSON lines on stderr so that stdout stays free for the
declarations a command prints.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Each asyncio task sees the context of the import run it belongs to
_run_context: ContextVar[Dict[str, Any]] = ContextVar("run_context", default={})

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger for import events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"gomod_importer.{name}")
        self.logger.propagate = False
        self.handler = logging.StreamHandler(sys.stderr)
        self.handler.setFormatter(StructuredFormatter())
        self.logger.addHandler(self.handler)
        self.logger.setLevel(logging.WARNING)

    @property
    def run_context(self) -> Dict[str, Any]:
        return _run_context.get()

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        self.logger.log(level, event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log(logging.DEBUG, event_type, **kwargs)


_importer_logger = EventLogger("importer")
_toolchain_logger = EventLogger("toolchain")
_ALL_LOGGERS = [_importer_logger, _toolchain_logger]


def get_importer_logger() -> EventLogger:
    """Get import run logger."""
    return _importer_logger


def log_import_start(run_id: str, manifest_path: str, repository_root: str) -> None:
    set_run_context(run_id, manifest_path)
    _importer_logger.info(
        "import_started",
        repository_root=repository_root,
    )


def log_import_complete(
    duration_ms: int, declaration_count: int, skipped_count: int
) -> None:
    _importer_logger.info(
        "import_completed",
        duration_ms=duration_ms,
        declaration_count=declaration_count,
        skipped_count=skipped_count,
    )
    clear_run_context()


def log_module_skipped(path: str, version: str, reason: str, **kwargs) -> None:
    _importer_logger.warning(
        "module_skipped", module_path=path, module_version=version, reason=reason, **kwargs
    )


def log_command_start(argv: List[str], cwd: str) -> None:
    # argv[0] may be an absolute path below GOROOT; only the subcommand matters
    _toolchain_logger.debug("command_started", command=argv[1:], cwd=cwd)


def log_command_complete(
    argv: List[str], returncode: int, record_count: int, duration_ms: int
) -> None:
    level = _toolchain_logger.info if returncode == 0 else _toolchain_logger.error
    level(
        "command_completed",
        command=argv[1:],
        returncode=returncode,
        record_count=record_count,
        duration_ms=duration_ms,
    )


def set_run_context(
    run_id: Optional[str] = None, manifest_path: Optional[str] = None
) -> None:
    """Set the run context for the current task."""
    context = {}
    if run_id:
        context["run_id"] = run_id
    if manifest_path:
        context["manifest_path"] = manifest_path
    _run_context.set(context)


def clear_run_context() -> None:
    """Clear the run context of the current task."""
    _run_context.set({})


def configure_logging(
    log_level: str = "WARNING",
    enable_json: bool = True,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
) -> None:
    """Configure event logger levels and output format."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
        if enable_json:
            logger.handler.setFormatter(StructuredFormatter())
        else:
            logger.handler.setFormatter(logging.Formatter(log_format))
