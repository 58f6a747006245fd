"""Per-target crawl pipeline: list -> dedupe -> detail fan-out -> merge -> save."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

from ..errors import CorrelationError, ParseError, error_message
from ..logging_conf import LoggingExecutor
from .correlation import index_by_correlation, tag_items
from .fetcher import FetchFunc
from .models import (
    CrawlingTarget,
    CrawlingTargetGroup,
    DetailFetchResult,
    DetailParseResult,
    FetchedDetailPage,
    ParsedTarget,
    SaveMeta,
    TaggedDetail,
    TaggedListItem,
)
from .repository import ArticleRepository
from .retry import retry_async, retry_logger

MISSING_LIST_ITEM = "Missing list item for parsed detail"


class TargetPipeline:
    """Run every stage for one target, retrying the whole sequence on failure.

    Per-item fetch and parse failures are absorbed by the stage that sees them
    and only shrink the output. Anything escaping a stage aborts the attempt;
    the next attempt starts again from the listing fetch with fresh state.
    """

    def __init__(
        self,
        group: CrawlingTargetGroup,
        target: CrawlingTarget,
        *,
        fetch: FetchFunc,
        repository: ArticleRepository,
        executor: LoggingExecutor,
        stop_after_attempt: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float | None = 30.0,
    ) -> None:
        self.group = group
        self.target = target
        self.fetch = fetch
        self.repository = repository
        self.executor = executor
        self.stop_after_attempt = stop_after_attempt
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay

    @property
    def descriptor(self) -> dict[str, str]:
        return self.target.describe()

    async def run(self) -> int:
        """Return the number of articles the repository reports as saved."""

        return await retry_async(
            self.run_once,
            attempts=self.stop_after_attempt,
            on_retry=retry_logger(
                self.executor,
                "crawl.target.retry",
                self.stop_after_attempt,
                {"target": self.descriptor},
            ),
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )

    async def run_once(self) -> int:
        list_page_html = await self.fetch_list_page()
        parsed_list = await self.parse_list_page(list_page_html)
        items = await self.dedupe_list_items(parsed_list)
        fetched = await self.fetch_detail_pages(items)
        parsed = await self.parse_detail_pages(fetched.items, fetched.pages)
        articles = await self.merge_parsed_articles(parsed.items, parsed.details)
        return await self.save_articles(articles)

    # ------------------------------------------------------------------
    # List stages
    # ------------------------------------------------------------------
    async def fetch_list_page(self) -> str:
        async def _fetch() -> str:
            try:
                return await self.fetch(self.target.url)
            except Exception as exc:  # noqa: BLE001
                self.executor.error(
                    "crawl.list.fetch.failed",
                    target=self.descriptor,
                    url=self.target.url,
                    error=error_message(exc),
                )
                return ""

        return await self.executor.execute_with_logging(
            "crawl.list.fetch",
            _fetch,
            start_fields={"target": self.descriptor},
            done_fields=lambda html: {"html_length": len(html)},
        )

    async def parse_list_page(self, list_page_html: str) -> list[TaggedListItem]:
        async def _parse() -> list[TaggedListItem]:
            if not list_page_html:
                return []
            try:
                parsed = await self.target.parser.parse_list(list_page_html)
                missing = [index for index, item in enumerate(parsed) if not item.get("detail_url")]
                if missing:
                    raise ParseError("List item without detail_url", {"index": missing[0]})
                return tag_items(parsed)
            except Exception as exc:  # noqa: BLE001
                self.executor.error(
                    "crawl.list.parse.failed",
                    target=self.descriptor,
                    error=error_message(exc),
                )
                return []

        return await self.executor.execute_with_logging(
            "crawl.list.parse",
            _parse,
            start_fields={"target": self.descriptor, "html_length": len(list_page_html)},
            done_fields=lambda items: {"count": len(items)},
        )

    async def dedupe_list_items(self, parsed_list: list[TaggedListItem]) -> list[TaggedListItem]:
        async def _dedupe() -> list[TaggedListItem]:
            existing = await self.repository.fetch_existing_articles_by_urls(
                [item.detail_url for item in parsed_list]
            )
            existing_urls = {article["detail_url"] for article in existing}
            return [item for item in parsed_list if item.detail_url not in existing_urls]

        return await self.executor.execute_with_logging(
            "crawl.list.dedupe",
            _dedupe,
            start_fields={"target": self.descriptor, "in_count": len(parsed_list)},
            done_fields=lambda kept: {
                "out_count": len(kept),
                "filtered": len(parsed_list) - len(kept),
            },
        )

    # ------------------------------------------------------------------
    # Detail fan-out stages
    # ------------------------------------------------------------------
    async def fetch_detail_pages(self, items: list[TaggedListItem]) -> DetailFetchResult:
        async def _fetch_all() -> DetailFetchResult:
            settled = await _settle(self.fetch(item.detail_url) for item in items)
            result = DetailFetchResult(items=[], pages=[])
            for item, outcome in zip(items, settled):
                if isinstance(outcome, Exception):
                    result.failed_count += 1
                    self.executor.error(
                        "crawl.detail.fetch.failed",
                        target=self.descriptor,
                        detail_url=item.detail_url,
                        error=error_message(outcome),
                    )
                    continue
                result.pages.append(FetchedDetailPage(correlation_id=item.correlation_id, html=outcome))
                result.items.append(item)
            return result

        return await self.executor.execute_with_logging(
            "crawl.detail.fetch",
            _fetch_all,
            start_fields={"target": self.descriptor, "count": len(items)},
            done_fields=lambda result: {
                "success_count": len(result.pages),
                "failed_count": result.failed_count,
            },
        )

    async def parse_detail_pages(
        self, items: list[TaggedListItem], pages: list[FetchedDetailPage]
    ) -> DetailParseResult:
        async def _parse_all() -> DetailParseResult:
            items_by_id = index_by_correlation(items)
            settled = await _settle(self._parse_detail(page) for page in pages)
            result = DetailParseResult(items=[], details=[])
            for page, outcome in zip(pages, settled):
                item = items_by_id.get(page.correlation_id)
                if item is not None and not isinstance(outcome, Exception):
                    result.details.append(
                        TaggedDetail(correlation_id=page.correlation_id, fields=outcome)
                    )
                    result.items.append(item)
                    continue
                result.failed_count += 1
                self.executor.error(
                    "crawl.detail.parse.failed",
                    target=self.descriptor,
                    detail_url=item.detail_url if item is not None else None,
                    correlation_id=page.correlation_id,
                    error=error_message(outcome) if isinstance(outcome, Exception) else MISSING_LIST_ITEM,
                )
            return result

        return await self.executor.execute_with_logging(
            "crawl.detail.parse",
            _parse_all,
            start_fields={"target": self.descriptor, "count": len(pages)},
            done_fields=lambda result: {
                "success_count": len(result.details),
                "failed_count": result.failed_count,
            },
        )

    async def _parse_detail(self, page: FetchedDetailPage) -> dict[str, Any]:
        fields = await self.target.parser.parse_detail(page.html)
        if not isinstance(fields, Mapping):
            raise ParseError(
                "Detail parser returned no mapping", {"type": type(fields).__name__}
            )
        return dict(fields)

    # ------------------------------------------------------------------
    # Merge & save
    # ------------------------------------------------------------------
    async def merge_parsed_articles(
        self, items: list[TaggedListItem], details: list[TaggedDetail]
    ) -> list[ParsedTarget]:
        async def _merge() -> list[ParsedTarget]:
            items_by_id = index_by_correlation(items)
            merged: list[ParsedTarget] = []
            for detail in details:
                item = items_by_id.get(detail.correlation_id)
                if item is None:
                    raise CorrelationError(
                        "No matching list item for detail",
                        {"correlation_id": detail.correlation_id},
                    )
                merged.append(merge_article(item, detail))
            return merged

        return await self.executor.execute_with_logging(
            "crawl.merge",
            _merge,
            start_fields={
                "target": self.descriptor,
                "list_count": len(items),
                "detail_count": len(details),
            },
            done_fields=lambda merged: {"count": len(merged)},
        )

    async def save_articles(self, articles: list[ParsedTarget]) -> int:
        target_group = self.group.without_targets()
        meta = SaveMeta(task_id=self.executor.task_id, target_group=target_group, target=self.target)

        async def _save() -> int:
            return await self.repository.save_crawled_articles(articles, meta)

        return await self.executor.execute_with_logging(
            "crawl.save",
            _save,
            start_fields={"group": target_group, "target": self.descriptor, "count": len(articles)},
            done_fields=lambda saved: {"saved": saved},
        )


def merge_article(item: TaggedListItem, detail: TaggedDetail) -> ParsedTarget:
    """Overlay detail fields on the list item.

    Detail values of ``None`` never hide a list value, and the list item's
    ``detail_url`` stays the stored key.
    """

    merged = dict(item.fields)
    merged.update((key, value) for key, value in detail.fields.items() if value is not None)
    merged["detail_url"] = item.detail_url
    return merged


async def _settle(awaitables: Any) -> list[Any]:
    """Await every awaitable, returning each result or the exception it raised.

    No sibling is cancelled when another fails. Cancellation and other
    non-``Exception`` errors still propagate.
    """

    outcomes = await asyncio.gather(*awaitables, return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            raise outcome
    return list(outcomes)


__all__ = ["MISSING_LIST_ITEM", "TargetPipeline", "merge_article"]
