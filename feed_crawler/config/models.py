"""Pydantic models used across the feed-crawler configuration flow."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ImportString, field_validator, model_validator


class ChainOptions(BaseModel):
    """Per-target pipeline execution options."""

    stop_after_attempt: int = Field(
        default=3,
        description="Maximum attempts for a whole target pipeline before giving up.",
    )
    retry_base_delay: float = Field(
        default=1.0,
        description="Seconds before the first retry; doubles per attempt with jitter.",
    )
    retry_max_delay: float = Field(default=30.0, description="Upper bound for one retry delay.")

    @field_validator("stop_after_attempt")
    @classmethod
    def _positive_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("stop_after_attempt must be >= 1")
        return value

    @field_validator("retry_base_delay", "retry_max_delay")
    @classmethod
    def _non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("retry delays must be >= 0")
        return value


class FetchConfig(BaseModel):
    """Settings for the bundled HTTP fetcher."""

    timeout: float = 15.0
    user_agent: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value


class StorageConfig(BaseModel):
    """Where crawled articles are persisted and looked up for dedupe."""

    backend: Literal["sqlite", "jsonl"] = "sqlite"
    path: Path = Field(default=Path("data/articles.db"))

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_path(self, base_dir: Path) -> Path:
        """Return the storage path relative to the project root."""

        if not self.path.is_absolute():
            return (base_dir / self.path).resolve()
        return self.path


class SelectorConfig(BaseModel):
    """CSS selector templates for the bundled selectolax parser.

    ``entry_pattern`` selects the anchors on the listing page; each anchor's
    ``href`` becomes the item's ``detail_url``. ``title_pattern`` optionally
    narrows the title lookup relative to the anchor. ``detail_pattern`` maps
    output fields to one selector or a list of fallback selectors, each
    optionally suffixed with ``::text``, ``::html`` or ``::attr:<name>``.
    """

    entry_pattern: str
    title_pattern: str | None = None
    detail_pattern: dict[str, str | list[str]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_patterns(self) -> "SelectorConfig":
        if not self.entry_pattern.strip():
            raise ValueError("entry_pattern cannot be empty")
        if not self.detail_pattern:
            raise ValueError("detail_pattern needs at least one field")
        return self


class TargetConfig(BaseModel):
    """One content source: a listing URL and the parser that understands it."""

    name: str | None = None
    url: str
    selectors: SelectorConfig | None = None
    parser: ImportString | None = Field(
        default=None,
        description="Dotted path to a SourceParser subclass, e.g. 'pkg.module:MyParser'.",
    )

    @model_validator(mode="after")
    def _validate_parser_choice(self) -> "TargetConfig":
        if not self.url.strip():
            raise ValueError("url cannot be empty")
        if (self.selectors is None) == (self.parser is None):
            raise ValueError("target needs exactly one of 'selectors' or 'parser'")
        return self


class TargetGroupConfig(BaseModel):
    """Named collection of targets crawled together."""

    name: str
    max_concurrency: int | None = None
    targets: list[TargetConfig] = Field(default_factory=list)

    @field_validator("max_concurrency")
    @classmethod
    def _positive_concurrency(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("max_concurrency must be >= 1")
        return value

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("group name cannot be empty")
        return value


class GlobalConfig(BaseModel):
    """Global controls shared across groups."""

    max_concurrency: int = 5
    isolate_target_failures: bool = True
    chain: ChainOptions = Field(default_factory=ChainOptions)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @field_validator("max_concurrency")
    @classmethod
    def _positive_concurrency(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_concurrency must be >= 1")
        return value


__all__ = [
    "ChainOptions",
    "FetchConfig",
    "GlobalConfig",
    "SelectorConfig",
    "StorageConfig",
    "TargetConfig",
    "TargetGroupConfig",
]
