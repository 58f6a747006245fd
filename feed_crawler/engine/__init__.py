"""Engine components orchestrating list -> dedupe -> detail -> merge -> save."""

from .correlation import index_by_correlation, new_correlation_id, tag_items
from .fetcher import Fetcher, FetchFunc
from .models import (
    CrawlingTarget,
    CrawlingTargetGroup,
    DetailFetchResult,
    DetailParseResult,
    FetchedDetailPage,
    GroupRunResult,
    ParsedTarget,
    SaveMeta,
    TaggedDetail,
    TaggedListItem,
    TargetFailure,
)
from .parser import SelectorSourceParser, SourceParser
from .pipeline import TargetPipeline
from .repository import ArticleRepository, JsonlArticleRepository, SQLiteArticleRepository
from .retry import retry_async

__all__ = [
    "ArticleRepository",
    "CrawlingTarget",
    "CrawlingTargetGroup",
    "DetailFetchResult",
    "DetailParseResult",
    "FetchFunc",
    "FetchedDetailPage",
    "Fetcher",
    "GroupRunResult",
    "JsonlArticleRepository",
    "ParsedTarget",
    "SQLiteArticleRepository",
    "SaveMeta",
    "SelectorSourceParser",
    "SourceParser",
    "TaggedDetail",
    "TaggedListItem",
    "TargetFailure",
    "TargetPipeline",
    "index_by_correlation",
    "new_correlation_id",
    "retry_async",
    "tag_items",
]
