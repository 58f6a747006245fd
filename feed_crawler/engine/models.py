"""Runtime data model for targets, pipeline artifacts and run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .parser import SourceParser

ParsedTargetListItem = dict[str, Any]
ParsedTargetDetail = dict[str, Any]
ParsedTarget = dict[str, Any]


@dataclass(frozen=True, slots=True)
class CrawlingTarget:
    """A listing endpoint paired with the parser that understands its pages."""

    url: str
    parser: SourceParser
    name: str | None = None

    def describe(self) -> dict[str, str]:
        return {"name": self.name or "unknown", "list_url": self.url}


@dataclass(frozen=True, slots=True)
class CrawlingTargetGroup:
    """Named, read-only collection of targets crawled together."""

    name: str
    targets: tuple[CrawlingTarget, ...] = ()
    max_concurrency: int | None = None

    def without_targets(self) -> dict[str, Any]:
        return {"name": self.name, "max_concurrency": self.max_concurrency}


@dataclass(frozen=True, slots=True)
class TaggedListItem:
    """List item carrying the correlation id minted at list-parse time."""

    correlation_id: str
    fields: ParsedTargetListItem

    @property
    def detail_url(self) -> str:
        return self.fields["detail_url"]


@dataclass(frozen=True, slots=True)
class FetchedDetailPage:
    correlation_id: str
    html: str


@dataclass(frozen=True, slots=True)
class TaggedDetail:
    correlation_id: str
    fields: ParsedTargetDetail


@dataclass(slots=True)
class DetailFetchResult:
    items: list[TaggedListItem]
    pages: list[FetchedDetailPage]
    failed_count: int = 0


@dataclass(slots=True)
class DetailParseResult:
    items: list[TaggedListItem]
    details: list[TaggedDetail]
    failed_count: int = 0


@dataclass(frozen=True, slots=True)
class SaveMeta:
    """Run metadata handed to the repository alongside a target's articles."""

    task_id: str
    target_group: dict[str, Any]
    target: CrawlingTarget


@dataclass(slots=True)
class TargetFailure:
    """A target whose pipeline failed after its whole retry budget."""

    target: dict[str, str]
    error: str
    attempts: int
    exception: BaseException | None = field(default=None, repr=False)


@dataclass(slots=True)
class GroupRunResult:
    """Outcome of one group invocation."""

    group: str
    total_saved: int = 0
    saved_by_target: list[tuple[dict[str, str], int]] = field(default_factory=list)
    failures: list[TargetFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures


__all__ = [
    "CrawlingTarget",
    "CrawlingTargetGroup",
    "DetailFetchResult",
    "DetailParseResult",
    "FetchedDetailPage",
    "GroupRunResult",
    "ParsedTarget",
    "ParsedTargetDetail",
    "ParsedTargetListItem",
    "SaveMeta",
    "TaggedDetail",
    "TaggedListItem",
    "TargetFailure",
]
