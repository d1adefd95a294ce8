"""Database migration management"""
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Tuple

logger = logging.getLogger(__name__)

# Current database version
CURRENT_VERSION = 1

# Migration scripts, keyed by the version they upgrade to
MIGRATIONS = {
    # Version 1: chats, feeds, subscriptions
    1: [],
}


def has_version_table(conn: sqlite3.Connection) -> bool:
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    return cursor.fetchone() is not None


def get_schema_version(db_path: Path) -> int:
    """Get the current database version"""
    conn = sqlite3.connect(db_path)
    try:
        if not has_version_table(conn):
            # Unstamped databases carry the initial schema
            return 1

        cursor = conn.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
        row = cursor.fetchone()
        return row[0] if row else 1
    finally:
        conn.close()


def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Record a database version"""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "INSERT OR REPLACE INTO schema_version (version, applied_at) VALUES (?, ?)",
        (version, datetime.now().isoformat())
    )


def migrate(db_path: Path, target_version: int = None) -> Tuple[int, int]:
    """Run database migrations

    Args:
        db_path: database file path
        target_version: target version, defaults to the latest

    Returns:
        (old version, new version)
    """
    if target_version is None:
        target_version = CURRENT_VERSION

    current = get_schema_version(db_path)

    if current >= target_version:
        logger.info(f"Database is up to date (v{current})")
        return current, current

    conn = sqlite3.connect(db_path)
    try:
        for version in range(current + 1, target_version + 1):
            if version not in MIGRATIONS:
                continue

            logger.info(f"Migrating v{version - 1} → v{version}...")

            for sql in MIGRATIONS[version]:
                try:
                    conn.execute(sql)
                    logger.debug(f"  executed: {sql[:50]}...")
                except sqlite3.OperationalError as e:
                    if "duplicate column" in str(e).lower():
                        logger.debug(f"  skipped (already applied): {sql[:50]}...")
                    else:
                        raise

            set_schema_version(conn, version)
            conn.commit()
            logger.info(f"  ✅ migrated to v{version}")

        return current, target_version
    except Exception as e:
        conn.rollback()
        logger.error(f"Migration failed: {e}")
        raise
    finally:
        conn.close()


def check_migration_needed(db_path: Path) -> Tuple[bool, int, int]:
    """Check whether a migration is needed

    Returns:
        (migration needed, current version, latest version)
    """
    if not db_path.exists():
        return False, 0, CURRENT_VERSION

    current = get_schema_version(db_path)
    return current < CURRENT_VERSION, current, CURRENT_VERSION
