"""Persist crawled articles as JSON payloads in SQLite."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from threading import Lock
from typing import Sequence

from ...infra.storage import SQLiteManager
from ..models import ParsedTarget, SaveMeta
from .base import ArticleRepository, unique_urls

# SQLite's default host parameter limit is 999 on older builds.
_QUERY_CHUNK = 500


class SQLiteArticleRepository(ArticleRepository):
    """Articles keyed by ``detail_url``; re-saving a stored URL is a no-op."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    async def fetch_existing_articles_by_urls(self, urls: Sequence[str]) -> list[dict]:
        return await asyncio.to_thread(self._existing, unique_urls(urls))

    async def save_crawled_articles(self, articles: Sequence[ParsedTarget], meta: SaveMeta) -> int:
        return await asyncio.to_thread(self._save, list(articles), meta)

    def recent(self, group_name: str, limit: int = 20) -> list[tuple[str, str]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT detail_url, saved_at FROM articles WHERE group_name = ? "
                "ORDER BY saved_at DESC, rowid DESC LIMIT ?",
                (group_name, limit),
            ).fetchall()
        return [(row["detail_url"], row["saved_at"]) for row in rows]

    def _existing(self, urls: list[str]) -> list[dict]:
        found: list[dict] = []
        with self._lock:
            for start in range(0, len(urls), _QUERY_CHUNK):
                chunk = urls[start : start + _QUERY_CHUNK]
                placeholders = ",".join("?" for _ in chunk)
                rows = self._conn.execute(
                    f"SELECT detail_url FROM articles WHERE detail_url IN ({placeholders})",
                    chunk,
                ).fetchall()
                found.extend({"detail_url": row["detail_url"]} for row in rows)
        return found

    def _save(self, articles: list[ParsedTarget], meta: SaveMeta) -> int:
        saved = 0
        with self._lock:
            for article in articles:
                cursor = self._conn.execute(
                    "INSERT OR IGNORE INTO articles"
                    "(detail_url, group_name, target_name, task_id, payload, saved_at) "
                    "VALUES (?, ?, ?, ?, ?, datetime('now'))",
                    (
                        article["detail_url"],
                        meta.target_group.get("name"),
                        meta.target.describe()["name"],
                        meta.task_id,
                        json.dumps(article, ensure_ascii=False, default=str),
                    ),
                )
                saved += cursor.rowcount
            self._conn.commit()
        return saved


__all__ = ["SQLiteArticleRepository"]
