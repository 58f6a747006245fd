"""Article repository SPI: the dedupe lookup and the persistence sink."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from ..models import ParsedTarget, SaveMeta


class ArticleRepository(ABC):
    """Uniform repository contract enabling plug-and-play storage."""

    @abstractmethod
    async def fetch_existing_articles_by_urls(self, urls: Sequence[str]) -> list[dict]:
        """Return ``{"detail_url": ...}`` for every given URL already stored."""

    @abstractmethod
    async def save_crawled_articles(self, articles: Sequence[ParsedTarget], meta: SaveMeta) -> int:
        """Persist one target's articles and return how many were newly saved."""

    @abstractmethod
    def recent(self, group_name: str, limit: int = 20) -> list[tuple[str, str]]:
        """Return ``(detail_url, saved_at)`` pairs for a group, newest first."""

    def close(self) -> None:
        """Release underlying resources."""


def unique_urls(urls: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(urls))


__all__ = ["ArticleRepository", "unique_urls"]
