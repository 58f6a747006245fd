"""Append-only JSON-lines article repository."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Sequence

from ..models import ParsedTarget, SaveMeta
from .base import ArticleRepository


class JsonlArticleRepository(ArticleRepository):
    """Write one JSON object per saved article to a local file.

    The set of stored URLs is loaded once from the file and kept in memory, so
    a URL is written at most once per file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._urls: set[str] = {line["detail_url"] for line in self._read_lines()}

    async def fetch_existing_articles_by_urls(self, urls: Sequence[str]) -> list[dict]:
        with self._lock:
            return [{"detail_url": url} for url in dict.fromkeys(urls) if url in self._urls]

    async def save_crawled_articles(self, articles: Sequence[ParsedTarget], meta: SaveMeta) -> int:
        return await asyncio.to_thread(self._append, list(articles), meta)

    def recent(self, group_name: str, limit: int = 20) -> list[tuple[str, str]]:
        rows = [
            (line["detail_url"], line["saved_at"])
            for line in self._read_lines()
            if line.get("group") == group_name
        ]
        return list(reversed(rows))[:limit]

    def _append(self, articles: list[ParsedTarget], meta: SaveMeta) -> int:
        saved = 0
        saved_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with self._lock, self.path.open("a", encoding="utf-8") as stream:
            for article in articles:
                url = article["detail_url"]
                if url in self._urls:
                    continue
                record = {
                    "detail_url": url,
                    "group": meta.target_group.get("name"),
                    "target": meta.target.describe()["name"],
                    "task_id": meta.task_id,
                    "saved_at": saved_at,
                    "article": article,
                }
                json.dump(record, stream, ensure_ascii=False, default=str)
                stream.write("\n")
                self._urls.add(url)
                saved += 1
        return saved

    def _read_lines(self) -> list[dict]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as stream:
            return [json.loads(line) for line in stream if line.strip()]


__all__ = ["JsonlArticleRepository"]
