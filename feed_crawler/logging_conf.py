"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Mapping, TypeVar

import structlog

from .config.loader import slugify
from .errors import error_message

_LOGGING_INITIALISED = False

T = TypeVar("T")


def _default_log_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "logs"


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = log_dir or _default_log_dir()
    error_log = log_dir / "error.log"
    crawler_log = log_dir / "crawler.log"
    groups_dir = log_dir / "groups"
    groups_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    crawler_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "crawler_file": {
                        "class": "logging.FileHandler",
                        "level": level,
                        "filename": str(crawler_log),
                        "formatter": "plain",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                    },
                },
                "loggers": {
                    "feed_crawler": {
                        "handlers": ["console", "crawler_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("feed_crawler")


def group_logger(
    group_name: str, verbose: bool = False, log_dir: Path | None = None
) -> structlog.BoundLogger:
    """Return a logger bound to a target group, writing to its own file too."""

    log_dir = log_dir or _default_log_dir()
    configure_logging(verbose, log_dir)
    group_log_path = group_log_file(group_name, log_dir)
    group_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"feed_crawler.group.{slugify(group_name)}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(group_log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(group_log_path, encoding="utf-8")
        root_logger = logging.getLogger("feed_crawler")
        if root_logger.handlers:
            file_handler.setFormatter(root_logger.handlers[0].formatter)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(group=group_name)


class LoggingExecutor:
    """Wrap pipeline stages in start/done/error structured events.

    Every event is emitted as ``<event>.start`` followed by either
    ``<event>.done`` or ``<event>.error``. Start fields are repeated on the
    closing event so each line carries its target or group descriptor. Errors
    are logged and re-raised untouched.
    """

    def __init__(self, logger: Any, task_id: str) -> None:
        self.logger = logger
        self.task_id = task_id

    async def execute_with_logging(
        self,
        event: str,
        fn: Callable[[], Awaitable[T]],
        *,
        level: str = "debug",
        start_fields: Mapping[str, Any] | None = None,
        done_fields: Callable[[T], Mapping[str, Any]] | None = None,
    ) -> T:
        fields = dict(start_fields or {})
        emit = getattr(self.logger, level)
        emit(f"{event}.start", task_id=self.task_id, **fields)
        try:
            result = await fn()
        except Exception as exc:
            self.logger.error(
                f"{event}.error", task_id=self.task_id, error=error_message(exc), **fields
            )
            raise
        if done_fields:
            fields.update(done_fields(result))
        emit(f"{event}.done", task_id=self.task_id, **fields)
        return result

    def error(self, event: str, **data: Any) -> None:
        self.logger.error(event, task_id=self.task_id, **data)

    def warning(self, event: str, **data: Any) -> None:
        self.logger.warning(event, task_id=self.task_id, **data)


def group_log_file(group_name: str, log_dir: Path | None = None) -> Path:
    return (log_dir or _default_log_dir()) / "groups" / f"{slugify(group_name) or 'group'}.log"


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_group_logs(log_dir: Path | None = None) -> Iterable[Path]:
    """Yield available group log file paths."""

    groups_dir = (log_dir or _default_log_dir()) / "groups"
    if not groups_dir.exists():
        return []
    return sorted(p for p in groups_dir.glob("*.log"))


__all__ = [
    "LoggingExecutor",
    "available_group_logs",
    "configure_logging",
    "group_log_file",
    "group_logger",
    "tail_log",
]
