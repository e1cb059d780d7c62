"""Database initialisation and migration helpers.

``init_db(conn)`` is idempotent, safe to call on an existing database.
``migrate(conn)`` runs incremental schema changes tracked in a version table.
"""

from __future__ import annotations

import logging
import sqlite3

from flowgraph.config import settings
from flowgraph.db.connection import transaction

logger = logging.getLogger(__name__)

# (version, sql) pairs applied in order by ``migrate``.
MIGRATIONS: list[tuple[int, str]] = [
    # (1, "ALTER TABLE nodes ADD COLUMN foo TEXT;"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_schema() -> str:
    """Load the bundled schema.sql."""
    return settings.schema_path.read_text(encoding="utf-8")


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the internal schema-version tracking table if absent."""
    with transaction(conn):
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at TEXT DEFAULT (datetime('now'))
            )
            """
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes, then apply pending migrations.

    This function is **idempotent**: every DDL statement uses ``IF NOT EXISTS``
    so calling it multiple times on the same database is safe.

    Args:
        conn: An open connection from :func:`~flowgraph.db.connection.get_connection`.
    """
    # executescript() splits the multi-statement script itself; it issues an
    # implicit COMMIT first, which is fine for DDL-only scripts.
    conn.executescript(_read_schema())
    _ensure_version_table(conn)
    migrate(conn)


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 if none applied)."""
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_version"
    ).fetchone()
    return row[0] if row else 0


def migrate(conn: sqlite3.Connection, migrations: list[tuple[int, str]] | None = None) -> None:
    """Run any pending incremental migrations.

    Each migration is a tuple of ``(version: int, sql: str)``.  Migrations are
    applied in version order and recorded in ``schema_version``.
    """
    pending = sorted(MIGRATIONS if migrations is None else migrations)
    applied = current_version(conn)
    for version, sql in pending:
        if version > applied:
            with transaction(conn):
                conn.execute(sql)
                conn.execute(
                    "INSERT INTO schema_version(version) VALUES (?)", (version,)
                )
            logger.info("Applied schema migration %d", version)
