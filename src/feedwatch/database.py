import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Generator, List, Optional

from .errors import StorageError
from .migrations import CURRENT_VERSION, has_version_table, set_schema_version
from .models import Chat, ChatKind, Feed, FeedType, Subscription

logger = logging.getLogger(__name__)

# Seconds a connection waits for another writer to release the database
DEFAULT_BUSY_TIMEOUT = 30.0


class Database:
    """SQLite database repository

    Connections are opened per call and always closed. Query helpers take the
    connection of the surrounding transaction so a caller can group several of
    them into one atomic unit of work.
    """

    def __init__(self, db_path: Path, busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._init_db()

    @contextmanager
    def _get_conn(self) -> Generator[sqlite3.Connection, None, None]:
        """Get database connection context manager (autocommit mode)"""
        try:
            conn = sqlite3.connect(
                self.db_path, timeout=self.busy_timeout, isolation_level=None
            )
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Open a write transaction.

        BEGIN IMMEDIATE takes the database write lock up front, so concurrent
        writers are serialized for the whole unit of work. Any exception rolls
        the transaction back and is re-raised.
        """
        with self._get_conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                # sqlite may already have rolled back on some errors
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @contextmanager
    def read(self) -> Generator[sqlite3.Connection, None, None]:
        """Open a read-only scope"""
        with self._get_conn() as conn:
            yield conn

    def _init_db(self) -> None:
        """Initialize database tables"""
        with self._get_conn() as conn:
            fresh = not has_version_table(conn) and not self._has_table(conn, "chats")
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS chats (
                    id INTEGER PRIMARY KEY,
                    kind TEXT NOT NULL,
                    username TEXT,
                    first_name TEXT,
                    last_name TEXT,
                    title TEXT,
                    invite_link TEXT,
                    utc_offset_minutes INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS feeds (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    link TEXT NOT NULL UNIQUE,
                    feed_type TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id INTEGER NOT NULL,
                    feed_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (chat_id) REFERENCES chats(id),
                    FOREIGN KEY (feed_id) REFERENCES feeds(id),
                    UNIQUE(chat_id, feed_id)
                );

                CREATE INDEX IF NOT EXISTS idx_subscriptions_chat_id
                    ON subscriptions(chat_id);
                CREATE INDEX IF NOT EXISTS idx_subscriptions_feed_id
                    ON subscriptions(feed_id);
            """)
            if fresh:
                set_schema_version(conn, CURRENT_VERSION)
                logger.info(f"Created database {self.db_path} at schema v{CURRENT_VERSION}")

    @staticmethod
    def _has_table(conn: sqlite3.Connection, name: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
        ).fetchone()
        return row is not None

    # Chat operations
    def upsert_chat(self, conn: sqlite3.Connection, chat: Chat) -> Chat:
        """Insert a chat or refresh its identity fields. The UTC offset is kept."""
        now = datetime.now().isoformat()
        conn.execute(
            """
            INSERT INTO chats (id, kind, username, first_name, last_name, title,
                               invite_link, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                kind = excluded.kind,
                username = excluded.username,
                first_name = excluded.first_name,
                last_name = excluded.last_name,
                title = excluded.title,
                invite_link = excluded.invite_link,
                updated_at = excluded.updated_at
            """,
            (chat.id, chat.kind.value, chat.username, chat.first_name,
             chat.last_name, chat.title, chat.invite_link, now, now)
        )
        return self.find_chat(conn, chat.id)

    def find_chat(self, conn: sqlite3.Connection, chat_id: int) -> Optional[Chat]:
        """Get chat by id"""
        row = conn.execute("SELECT * FROM chats WHERE id = ?", (chat_id,)).fetchone()
        if row:
            return Chat(
                id=row["id"],
                kind=ChatKind(row["kind"]),
                username=row["username"],
                first_name=row["first_name"],
                last_name=row["last_name"],
                title=row["title"],
                invite_link=row["invite_link"],
                utc_offset_minutes=row["utc_offset_minutes"],
            )
        return None

    def set_utc_offset(self, conn: sqlite3.Connection, chat_id: int, offset: int) -> None:
        """Store the UTC offset of a chat"""
        conn.execute(
            "UPDATE chats SET utc_offset_minutes = ?, updated_at = ? WHERE id = ?",
            (offset, datetime.now().isoformat(), chat_id)
        )

    # Feed operations
    def create_feed(self, conn: sqlite3.Connection, link: str, feed_type: FeedType) -> Feed:
        """Insert a feed unless the link is already known, return the stored row"""
        conn.execute(
            "INSERT INTO feeds (link, feed_type, created_at) VALUES (?, ?, ?) "
            "ON CONFLICT(link) DO NOTHING",
            (link, feed_type.value, datetime.now().isoformat())
        )
        return self.find_feed_by_link(conn, link)

    def find_feed_by_link(self, conn: sqlite3.Connection, link: str) -> Optional[Feed]:
        """Get feed by link"""
        row = conn.execute("SELECT * FROM feeds WHERE link = ?", (link,)).fetchone()
        if row:
            return Feed(
                id=row["id"],
                link=row["link"],
                feed_type=FeedType(row["feed_type"]),
                created_at=datetime.fromisoformat(row["created_at"])
            )
        return None

    # Subscription operations
    def find_subscription(
        self, conn: sqlite3.Connection, chat_id: int, feed_id: int
    ) -> Optional[Subscription]:
        """Get subscription by (chat_id, feed_id)"""
        row = conn.execute(
            "SELECT * FROM subscriptions WHERE chat_id = ? AND feed_id = ?",
            (chat_id, feed_id)
        ).fetchone()
        if row:
            return Subscription(
                id=row["id"],
                chat_id=row["chat_id"],
                feed_id=row["feed_id"],
                created_at=datetime.fromisoformat(row["created_at"])
            )
        return None

    def insert_subscription(
        self, conn: sqlite3.Connection, chat_id: int, feed_id: int
    ) -> Subscription:
        """Insert a subscription. Raises sqlite3.IntegrityError on duplicates."""
        now = datetime.now().isoformat()
        cursor = conn.execute(
            "INSERT INTO subscriptions (chat_id, feed_id, created_at) VALUES (?, ?, ?)",
            (chat_id, feed_id, now)
        )
        return Subscription(
            id=cursor.lastrowid,
            chat_id=chat_id,
            feed_id=feed_id,
            created_at=datetime.fromisoformat(now)
        )

    def remove_subscription(self, conn: sqlite3.Connection, chat_id: int, feed_id: int) -> bool:
        """Remove a subscription"""
        cursor = conn.execute(
            "DELETE FROM subscriptions WHERE chat_id = ? AND feed_id = ?",
            (chat_id, feed_id)
        )
        return cursor.rowcount > 0

    def count_subscriptions(self, conn: sqlite3.Connection, chat_id: int) -> int:
        """Get the number of feeds a chat is subscribed to"""
        row = conn.execute(
            "SELECT COUNT(*) FROM subscriptions WHERE chat_id = ?", (chat_id,)
        ).fetchone()
        return row[0]

    def get_feed_links(self, conn: sqlite3.Connection, chat_id: int) -> List[str]:
        """Get links of all feeds a chat is subscribed to, sorted by link"""
        rows = conn.execute(
            """
            SELECT f.link FROM subscriptions s
            JOIN feeds f ON f.id = s.feed_id
            WHERE s.chat_id = ?
            ORDER BY f.link
            """,
            (chat_id,)
        ).fetchall()
        return [row["link"] for row in rows]

    # Statistics operations
    def get_stats(self) -> dict:
        """Get overall statistics"""
        with self.read() as conn:
            chat_count = conn.execute("SELECT COUNT(*) FROM chats").fetchone()[0]
            feed_count = conn.execute("SELECT COUNT(*) FROM feeds").fetchone()[0]
            subscription_count = conn.execute("SELECT COUNT(*) FROM subscriptions").fetchone()[0]
            timezone_count = conn.execute(
                "SELECT COUNT(*) FROM chats WHERE utc_offset_minutes IS NOT NULL"
            ).fetchone()[0]
        return {
            "chat_count": chat_count,
            "feed_count": feed_count,
            "subscription_count": subscription_count,
            "timezone_count": timezone_count,
        }
