from __future__ import annotations

import asyncio

import pytest

from feed_crawler.config import SelectorConfig
from feed_crawler.engine import SelectorSourceParser
from feed_crawler.errors import ParseError


def _parser(**overrides) -> SelectorSourceParser:
    base = {
        "entry_pattern": "ul.items li a",
        "detail_pattern": {"title": "h1", "content": "article"},
    }
    base.update(overrides)
    return SelectorSourceParser(SelectorConfig(**base), base_url="https://example.com/news/")


def test_parse_entries_deduplicates_and_resolves_urls() -> None:
    html = """
    <html><body>
    <ul class="items">
      <li><a href="/a">A</a></li>
      <li><a href="https://ext.test/b">B</a></li>
      <li><a href="/a">Duplicate</a></li>
      <li><a href="javascript:void(0)">Skip</a></li>
      <li><a href="#top">Anchor</a></li>
      <li><a>No href</a></li>
      <li><a href="c.html"></a></li>
    </ul>
    </body></html>
    """

    entries = _parser().parse_entries(html)

    assert entries == [
        {"detail_url": "https://example.com/a", "title": "A"},
        {"detail_url": "https://ext.test/b", "title": "B"},
        {"detail_url": "https://example.com/news/c.html", "title": None},
    ]


def test_parse_entries_uses_title_pattern() -> None:
    html = '<ul class="items"><li><a href="/x"><span class="t">Headline</span><em>3 min</em></a></li></ul>'

    entries = _parser(title_pattern="span.t").parse_entries(html)

    assert entries == [{"detail_url": "https://example.com/x", "title": "Headline"}]


def test_parse_list_is_async_wrapper() -> None:
    html = '<ul class="items"><li><a href="/x">X</a></li></ul>'

    entries = asyncio.run(_parser().parse_list(html))

    assert [entry["detail_url"] for entry in entries] == ["https://example.com/x"]


def test_parse_detail_with_meta_fallback() -> None:
    parser = _parser(
        detail_pattern={
            "title": ["h1::text", 'meta[name="title"]::attr:content'],
            "content": ["article.body::text"],
        }
    )
    html = """
    <html>
      <head>
        <meta name="title" content="From Meta" />
        <meta property="og:description" content="Backup description" />
      </head>
      <body>
        <article class="body"></article>
      </body>
    </html>
    """

    record = asyncio.run(parser.parse_detail(html))

    assert record == {"title": "From Meta", "content": "Backup description"}


def test_parse_detail_html_and_attribute_modes() -> None:
    parser = _parser(
        detail_pattern={
            "body": "div.post::html",
            "published": "time::attr:datetime",
            "author": "span.author",
        }
    )
    html = (
        '<div class="post"><p>Hi</p></div>'
        '<time datetime="2024-05-01T08:00:00Z">May 1</time>'
    )

    record = parser.parse_fields(html)

    assert record["body"].startswith("<div")
    assert "<p>Hi</p>" in record["body"]
    assert record["published"] == "2024-05-01T08:00:00Z"
    assert record["author"] is None


def test_parse_detail_falls_back_to_document_title() -> None:
    html = "<html><head><title> Page Title </title></head><body></body></html>"

    record = _parser().parse_fields(html)

    assert record == {"title": "Page Title", "content": None}


def test_parse_detail_raises_when_nothing_matches() -> None:
    with pytest.raises(ParseError, match="No detail fields matched"):
        _parser(detail_pattern={"summary": "p.lead"}).parse_fields("<html><body></body></html>")
