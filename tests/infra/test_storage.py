from __future__ import annotations

from feed_crawler.infra import SQLiteManager


def test_sqlite_manager_initialises_schema(tmp_path) -> None:
    manager = SQLiteManager()
    conn = manager.connect(tmp_path / "nested" / "articles.db")
    columns = conn.execute("PRAGMA table_info(articles)").fetchall()
    column_names = [row["name"] for row in columns]
    assert {"detail_url", "group_name", "target_name", "task_id", "payload", "saved_at"}.issubset(
        column_names
    )
    indexes = [row["name"] for row in conn.execute("PRAGMA index_list(articles)").fetchall()]
    assert "idx_articles_group" in indexes
    manager.close_all()


def test_sqlite_manager_reuses_connections(tmp_path) -> None:
    manager = SQLiteManager()
    path = tmp_path / "articles.db"
    assert manager.connect(path) is manager.connect(path)
    manager.close_all()
    assert manager.connect(path) is not None
    manager.close_all()
