import sqlite3

import pytest

from feedwatch import migrations
from feedwatch.database import Database
from feedwatch.errors import StorageError
from feedwatch.migrations import (
    CURRENT_VERSION,
    check_migration_needed,
    get_schema_version,
    migrate,
)
from feedwatch.models import FeedType


class TestTransactions:

    def test_commit(self, db, private_chat):
        with db.transaction() as conn:
            db.upsert_chat(conn, private_chat)

        with db.read() as conn:
            assert db.find_chat(conn, 42) is not None

    def test_rollback_on_error(self, db, private_chat):
        with pytest.raises(RuntimeError):
            with db.transaction() as conn:
                db.upsert_chat(conn, private_chat)
                db.create_feed(conn, "http://example.com/feed", FeedType.ATOM)
                raise RuntimeError("boom")

        with db.read() as conn:
            assert db.find_chat(conn, 42) is None
            assert db.find_feed_by_link(conn, "http://example.com/feed") is None

    def test_sqlite_errors_become_storage_errors(self, db):
        with pytest.raises(StorageError):
            with db.read() as conn:
                conn.execute("SELECT * FROM missing_table")

    def test_unique_subscription_constraint(self, db, private_chat):
        with db.transaction() as conn:
            db.upsert_chat(conn, private_chat)
            feed = db.create_feed(conn, "http://example.com/feed", FeedType.RSS)
            db.insert_subscription(conn, 42, feed.id)
            with pytest.raises(sqlite3.IntegrityError):
                db.insert_subscription(conn, 42, feed.id)

    def test_create_feed_keeps_first_type(self, db):
        with db.transaction() as conn:
            first = db.create_feed(conn, "http://example.com/feed", FeedType.RSS)
            second = db.create_feed(conn, "http://example.com/feed", FeedType.ATOM)

        assert first.id == second.id
        assert second.feed_type == FeedType.RSS

    def test_stats(self, db, manager, private_chat, group_chat):
        manager.create_subscription(private_chat, "http://example.com/a")
        manager.create_subscription(group_chat, "http://example.com/a")
        manager.create_subscription(group_chat, "http://example.com/b")

        assert db.get_stats() == {
            "chat_count": 2,
            "feed_count": 2,
            "subscription_count": 3,
            "timezone_count": 0,
        }


class TestMigrations:

    def test_fresh_database_is_current(self, tmp_path):
        db_path = tmp_path / "data.db"
        Database(db_path)

        assert get_schema_version(db_path) == CURRENT_VERSION
        assert check_migration_needed(db_path) == (False, CURRENT_VERSION, CURRENT_VERSION)

    def test_missing_database_needs_nothing(self, tmp_path):
        assert check_migration_needed(tmp_path / "none.db") == (False, 0, CURRENT_VERSION)

    def test_unstamped_database_is_v1(self, tmp_path):
        db_path = tmp_path / "data.db"
        conn = sqlite3.connect(db_path)
        conn.execute("CREATE TABLE chats (id INTEGER PRIMARY KEY)")
        conn.close()

        assert get_schema_version(db_path) == 1

    def test_applies_newer_migration(self, tmp_path, monkeypatch, private_chat):
        db_path = tmp_path / "data.db"
        db = Database(db_path)
        with db.transaction() as conn:
            db.upsert_chat(conn, private_chat)

        monkeypatch.setattr(migrations, "CURRENT_VERSION", 2)
        monkeypatch.setitem(migrations.MIGRATIONS, 2, ["ALTER TABLE chats ADD COLUMN language TEXT"])

        assert check_migration_needed(db_path) == (True, 1, 2)
        assert migrate(db_path) == (1, 2)
        assert get_schema_version(db_path) == 2
        # Already current
        assert migrate(db_path, target_version=2) == (2, 2)

        with db.read() as conn:
            chat = db.find_chat(conn, 42)
            columns = [row[1] for row in conn.execute("PRAGMA table_info(chats)")]
        assert chat.first_name == "First"
        assert "language" in columns
