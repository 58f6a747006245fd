"""Source parser capability and the bundled CSS-selector implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urljoin

from selectolax.parser import HTMLParser

from ..config import SelectorConfig
from ..errors import ParseError

_TITLE_META_SELECTORS = ('meta[property="og:title"]', 'meta[name="title"]', "title")
_CONTENT_META_SELECTORS = ('meta[property="og:description"]', 'meta[name="description"]')


class SourceParser(ABC):
    """Source-specific extraction of list items and detail fields.

    ``parse_list`` must return mappings holding a ``detail_url`` that is unique
    within one call; any other keys are carried through to the saved article.
    Both methods may raise; the pipeline absorbs the failure at the calling
    stage.
    """

    @abstractmethod
    async def parse_list(self, html: str) -> list[dict[str, Any]]:
        """Extract candidate items from a listing page."""

    @abstractmethod
    async def parse_detail(self, html: str) -> dict[str, Any]:
        """Extract structured fields from one detail page."""


class SelectorSourceParser(SourceParser):
    """Parse listing and detail pages according to CSS selector templates."""

    def __init__(self, selectors: SelectorConfig, base_url: str) -> None:
        self.selectors = selectors
        self.base_url = base_url

    async def parse_list(self, html: str) -> list[dict[str, Any]]:
        return self.parse_entries(html)

    async def parse_detail(self, html: str) -> dict[str, Any]:
        return self.parse_fields(html)

    def parse_entries(self, html: str) -> list[dict[str, Any]]:
        parser = HTMLParser(html)
        entries: list[dict[str, Any]] = []
        seen: set[str] = set()
        for node in parser.css(self.selectors.entry_pattern):
            href = (node.attributes.get("href") or "").strip()
            if not href or href.startswith(("javascript:", "#")):
                continue
            full_url = urljoin(self.base_url, href)
            if full_url in seen:
                continue
            seen.add(full_url)
            title_node = node.css_first(self.selectors.title_pattern) if self.selectors.title_pattern else node
            title = title_node.text(separator=" ", strip=True) if title_node else ""
            entries.append({"detail_url": full_url, "title": title or None})
        return entries

    def parse_fields(self, html: str) -> dict[str, Any]:
        parser = HTMLParser(html)
        data: dict[str, Any] = {}
        for field, selector_config in self.selectors.detail_pattern.items():
            selectors = selector_config if isinstance(selector_config, list) else [selector_config]
            value = None
            for selector in selectors:
                css_selector, mode = self._split_selector(selector)
                if not css_selector:
                    continue
                node = parser.css_first(css_selector)
                if node is None:
                    continue
                value = self._node_value(node, mode)
                if value and value.strip():
                    break

            if not value or not value.strip():
                value = self._meta_fallback(parser, field)
            data[field] = value.strip() if value and value.strip() else None

        if not any(data.values()):
            raise ParseError(
                "No detail fields matched", {"fields": ",".join(self.selectors.detail_pattern)}
            )
        return data

    def _meta_fallback(self, parser: HTMLParser, field: str) -> str | None:
        if field == "title":
            candidates = _TITLE_META_SELECTORS
        elif field == "content":
            candidates = _CONTENT_META_SELECTORS
        else:
            return None
        for meta_selector in candidates:
            node = parser.css_first(meta_selector)
            if node is None:
                continue
            if meta_selector == "title":
                value = node.text(separator=" ", strip=True)
            else:
                value = node.attributes.get("content")
            if value and value.strip():
                return value
        return None

    @staticmethod
    def _node_value(node: Any, mode: str) -> str | None:
        if mode == "html":
            return node.html
        if mode.startswith("attr:"):
            return node.attributes.get(mode.split(":", 1)[1])
        return node.text(separator=" ", strip=True)

    @staticmethod
    def _split_selector(selector: str) -> tuple[str, str]:
        if "::" in selector:
            css, mode = selector.split("::", 1)
            return css.strip(), mode.strip().lower()
        return selector.strip(), "text"


__all__ = ["SelectorSourceParser", "SourceParser"]
