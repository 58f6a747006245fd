"""Pytest configuration providing shared fakes and fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest
import structlog

from feed_crawler.config import (
    ChainOptions,
    ConfigLocator,
    ConfigRepository,
    GlobalConfig,
    SelectorConfig,
    StorageConfig,
    TargetConfig,
    TargetGroupConfig,
)
from feed_crawler.engine import (
    ArticleRepository,
    CrawlingTarget,
    CrawlingTargetGroup,
    SaveMeta,
    SourceParser,
    TargetPipeline,
)
from feed_crawler.errors import FetchError, ParseError
from feed_crawler.logging_conf import LoggingExecutor


class StubParser(SourceParser):
    """Parser returning canned list items and per-URL detail fields.

    Detail pages produced by :class:`FakeFetch` look like ``HTML:<url>``, so the
    detail URL can be recovered from the page text.
    """

    def __init__(
        self,
        items: Iterable[dict[str, Any]] = (),
        details: dict[str, dict[str, Any]] | None = None,
        list_error: Exception | None = None,
        detail_errors: Iterable[str] = (),
    ) -> None:
        self.items = [dict(item) for item in items]
        self.details = details or {}
        self.list_error = list_error
        self.detail_errors = set(detail_errors)
        self.list_calls = 0
        self.detail_calls: list[str] = []

    async def parse_list(self, html: str) -> list[dict[str, Any]]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [dict(item) for item in self.items]

    async def parse_detail(self, html: str) -> dict[str, Any]:
        url = html.removeprefix("HTML:")
        self.detail_calls.append(url)
        if url in self.detail_errors:
            raise ParseError("detail parse fail", {"url": url})
        return dict(self.details.get(url, {"content": f"body of {url}"}))


class FakeFetch:
    """Async fetch function answering ``HTML:<url>`` unless told to fail."""

    def __init__(self, failing: Iterable[str] = ()) -> None:
        self.failing = set(failing)
        self.calls: list[str] = []

    async def __call__(self, url: str) -> str:
        self.calls.append(url)
        if url in self.failing:
            raise FetchError(f"{url} unreachable")
        return f"HTML:{url}"


class FakeRepository(ArticleRepository):
    """In-memory repository recording lookups and saves."""

    def __init__(self, existing: Iterable[str] = (), remember_saves: bool = False) -> None:
        self.existing = set(existing)
        self.remember_saves = remember_saves
        self.lookups: list[list[str]] = []
        self.saved: list[tuple[list[dict[str, Any]], SaveMeta]] = []

    async def fetch_existing_articles_by_urls(self, urls: Sequence[str]) -> list[dict]:
        self.lookups.append(list(urls))
        return [{"detail_url": url} for url in urls if url in self.existing]

    async def save_crawled_articles(self, articles: Sequence[dict], meta: SaveMeta) -> int:
        self.saved.append((list(articles), meta))
        if self.remember_saves:
            self.existing.update(article["detail_url"] for article in articles)
        return len(articles)

    def recent(self, group_name: str, limit: int = 20) -> list[tuple[str, str]]:
        return []

    @property
    def saved_articles(self) -> list[dict[str, Any]]:
        return [article for batch, _meta in self.saved for article in batch]


def list_items(*urls: str) -> list[dict[str, Any]]:
    return [{"detail_url": url, "title": url.rsplit("/", 1)[-1].upper()} for url in urls]


@pytest.fixture
def make_target() -> Callable[..., CrawlingTarget]:
    def _builder(
        name: str | None = "T1",
        url: str = "https://site.test/list1",
        parser: SourceParser | None = None,
    ) -> CrawlingTarget:
        return CrawlingTarget(url=url, parser=parser or StubParser(), name=name)

    return _builder


@pytest.fixture
def make_pipeline() -> Callable[..., TargetPipeline]:
    def _builder(
        target: CrawlingTarget,
        repository: ArticleRepository | None = None,
        fetch: FakeFetch | None = None,
        group: CrawlingTargetGroup | None = None,
        attempts: int = 1,
    ) -> TargetPipeline:
        return TargetPipeline(
            group or CrawlingTargetGroup(name="group-1", targets=(target,)),
            target,
            fetch=fetch or FakeFetch(),
            repository=repository or FakeRepository(),
            executor=LoggingExecutor(structlog.get_logger("tests"), "task-1"),
            stop_after_attempt=attempts,
            retry_base_delay=0.0,
        )

    return _builder


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        max_concurrency=2,
        chain=ChainOptions(stop_after_attempt=1, retry_base_delay=0.0),
        storage=StorageConfig(path=tmp_path / "articles.db"),
    )


@pytest.fixture
def sample_group_config() -> Callable[..., TargetGroupConfig]:
    def _builder(**overrides: Any) -> TargetGroupConfig:
        base: dict[str, Any] = {
            "name": "tech-news",
            "targets": [
                TargetConfig(
                    name="Example",
                    url="https://example.com/news",
                    selectors=SelectorConfig(
                        entry_pattern="ul.list li a",
                        detail_pattern={"title": "h1", "content": "article ::html"},
                    ),
                )
            ],
        }
        base.update(overrides)
        return TargetGroupConfig(**base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("FEED_CRAWLER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository
