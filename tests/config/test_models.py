from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import StubParser
from feed_crawler.config import (
    ChainOptions,
    FetchConfig,
    GlobalConfig,
    SelectorConfig,
    StorageConfig,
    TargetConfig,
    TargetGroupConfig,
)


def test_global_config_defaults() -> None:
    config = GlobalConfig()

    assert config.max_concurrency == 5
    assert config.isolate_target_failures is True
    assert config.chain.stop_after_attempt == 3
    assert config.chain.retry_base_delay == 1.0
    assert config.chain.retry_max_delay == 30.0
    assert config.storage.path == Path("data/articles.db")


@pytest.mark.parametrize(
    "factory",
    [
        lambda: ChainOptions(stop_after_attempt=0),
        lambda: ChainOptions(retry_base_delay=-1),
        lambda: ChainOptions(retry_max_delay=-0.5),
        lambda: GlobalConfig(max_concurrency=0),
        lambda: FetchConfig(timeout=0),
        lambda: TargetGroupConfig(name="g", max_concurrency=0),
        lambda: TargetGroupConfig(name="  "),
        lambda: StorageConfig(backend="mongo"),
    ],
)
def test_invalid_values_are_rejected(factory) -> None:
    with pytest.raises(ValidationError):
        factory()


def test_selector_config_requires_patterns() -> None:
    with pytest.raises(ValidationError):
        SelectorConfig(entry_pattern=" ", detail_pattern={"title": "h1"})
    with pytest.raises(ValidationError):
        SelectorConfig(entry_pattern="a")
    config = SelectorConfig(entry_pattern="a", detail_pattern={"title": ["h1", "title"]})
    assert config.detail_pattern["title"] == ["h1", "title"]


def test_target_needs_exactly_one_parser_source() -> None:
    selectors = SelectorConfig(entry_pattern="a", detail_pattern={"title": "h1"})
    with pytest.raises(ValidationError):
        TargetConfig(url="https://example.com")
    with pytest.raises(ValidationError):
        TargetConfig(url="https://example.com", selectors=selectors, parser="conftest.StubParser")
    with pytest.raises(ValidationError):
        TargetConfig(url="  ", selectors=selectors)


def test_target_parser_import_string_resolves_class() -> None:
    target = TargetConfig(url="https://example.com", parser="conftest.StubParser")

    assert target.parser is StubParser


def test_storage_path_resolution(tmp_path: Path) -> None:
    relative = StorageConfig(path="data/a.db")
    absolute = StorageConfig(path=tmp_path / "b.db")

    assert relative.resolved_path(tmp_path) == (tmp_path / "data" / "a.db").resolve()
    assert absolute.resolved_path(Path("/elsewhere")) == tmp_path / "b.db"
