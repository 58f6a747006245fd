from __future__ import annotations

import asyncio

import pytest
import structlog
from structlog.testing import capture_logs

from feed_crawler.logging_conf import LoggingExecutor, available_group_logs, group_log_file, tail_log


def test_execute_with_logging_emits_start_and_done() -> None:
    async def work():
        return [1, 2, 3]

    with capture_logs() as logs:
        executor = LoggingExecutor(structlog.get_logger("tests"), "task-9")
        result = asyncio.run(
            executor.execute_with_logging(
                "crawl.sample",
                work,
                start_fields={"target": {"name": "A"}},
                done_fields=lambda value: {"count": len(value)},
            )
        )

    assert result == [1, 2, 3]
    assert [entry["event"] for entry in logs] == ["crawl.sample.start", "crawl.sample.done"]
    assert logs[0] == {
        "event": "crawl.sample.start",
        "log_level": "debug",
        "task_id": "task-9",
        "target": {"name": "A"},
    }
    assert logs[1]["count"] == 3
    assert logs[1]["target"] == {"name": "A"}


def test_execute_with_logging_logs_and_reraises_errors() -> None:
    async def work():
        raise LookupError("gone")

    with capture_logs() as logs:
        executor = LoggingExecutor(structlog.get_logger("tests"), "task-9")
        with pytest.raises(LookupError):
            asyncio.run(executor.execute_with_logging("crawl.sample", work, start_fields={"n": 1}))

    assert logs[-1]["event"] == "crawl.sample.error"
    assert logs[-1]["log_level"] == "error"
    assert logs[-1]["error"] == "gone"
    assert logs[-1]["n"] == 1


def test_done_fields_may_override_start_fields() -> None:
    async def work():
        return 5

    with capture_logs() as logs:
        executor = LoggingExecutor(structlog.get_logger("tests"), "task-9")
        asyncio.run(
            executor.execute_with_logging(
                "crawl.sample",
                work,
                level="info",
                start_fields={"count": 0},
                done_fields=lambda value: {"count": value},
            )
        )

    assert logs[-1]["count"] == 5
    assert logs[-1]["log_level"] == "info"


def test_tail_log_and_available_group_logs(tmp_path) -> None:
    groups_dir = tmp_path / "groups"
    groups_dir.mkdir()
    (groups_dir / "b.log").write_text("x\n", encoding="utf-8")
    (groups_dir / "a.log").write_text("one\ntwo\nthree\n", encoding="utf-8")
    (groups_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    assert [path.name for path in available_group_logs(tmp_path)] == ["a.log", "b.log"]
    assert tail_log(groups_dir / "a.log", 2) == ["two\n", "three\n"]
    assert tail_log(groups_dir / "missing.log") == []
    assert list(available_group_logs(tmp_path / "nowhere")) == []


def test_group_log_file_uses_slugged_name(tmp_path) -> None:
    assert group_log_file("News/Tech", tmp_path) == tmp_path / "groups" / "news-tech.log"
    assert group_log_file("tech-news", tmp_path) == tmp_path / "groups" / "tech-news.log"
    assert group_log_file("///", tmp_path).name == "group.log"
