"""Exception hierarchy shared by the crawl pipeline and its collaborators."""

from __future__ import annotations

from typing import Any


class CrawlerError(Exception):
    """Base class for all feed-crawler errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{key}={value}" for key, value in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class FetchError(CrawlerError):
    """Transport or HTTP status failure for a single endpoint."""


class ParseError(CrawlerError):
    """Source-specific extraction failure."""


class CorrelationError(CrawlerError):
    """A detail artifact reached merge without a matching list item."""


class ConfigurationError(CrawlerError):
    """Group or target configuration cannot be turned into a runnable target."""


class RetryExhaustedError(CrawlerError):
    """Raised once a retried operation has used its whole attempt budget."""

    def __init__(self, message: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(message, {"attempts": attempts, "error": error_message(last_error)})
        self.attempts = attempts
        self.last_error = last_error


class GroupCrawlError(CrawlerError):
    """Raised by a non-isolating group run when one or more targets failed."""

    def __init__(self, group: str, failures: list) -> None:
        super().__init__(
            f"{len(failures)} target(s) failed in group {group!r}",
            {"group": group, "failed": len(failures)},
        )
        self.group = group
        self.failures = failures


def error_message(error: object) -> str:
    """Render an exception (or any raised value) as a log-friendly message."""

    if isinstance(error, BaseException):
        text = str(error)
        return text or type(error).__name__
    return str(error)


__all__ = [
    "ConfigurationError",
    "CorrelationError",
    "CrawlerError",
    "FetchError",
    "GroupCrawlError",
    "ParseError",
    "RetryExhaustedError",
    "error_message",
]
