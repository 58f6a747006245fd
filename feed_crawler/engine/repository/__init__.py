"""Article repository SPI and implementations."""

from .base import ArticleRepository
from .jsonl_repository import JsonlArticleRepository
from .sqlite_repository import SQLiteArticleRepository

__all__ = ["ArticleRepository", "JsonlArticleRepository", "SQLiteArticleRepository"]
