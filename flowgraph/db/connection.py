"""SQLite connection factory and transaction helper.

Usage::

    from flowgraph.db.connection import get_connection, transaction

    conn = get_connection()
    with transaction(conn):
        conn.execute("UPDATE projects SET updated_at = ? WHERE project_id = ?", ...)
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path
from typing import Iterator, Optional, Union

from flowgraph.config import settings

_savepoint_ids = count(1)


class GraphConnection(sqlite3.Connection):
    """``sqlite3.Connection`` carrying a re-entrant write lock.

    The API shares one connection across worker threads; the lock keeps two
    transactions from interleaving on it.
    """

    def __init__(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(*args, **kwargs)
        self.write_lock = threading.RLock()


def get_connection(db_path: Optional[Union[Path, str]] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Steps performed on every new connection:
    1. Autocommit mode, so :func:`transaction` owns ``BEGIN``/``COMMIT``.
    2. Enable ``PRAGMA foreign_keys = ON``.
    3. Switch to WAL journal mode for concurrent readers.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.
            ``":memory:"`` gives a private in-memory database.

    Returns:
        A configured connection with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.
    """
    path = db_path or settings.db_path

    # Create parent directory if needed (no-op for `:memory:`)
    if str(path) != ":memory:":
        settings.ensure_workspace()
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(path),
        check_same_thread=False,
        isolation_level=None,
        factory=GraphConnection,
    )
    conn.row_factory = sqlite3.Row

    # PRAGMAs
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")

    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the enclosed block atomically.

    The outermost call issues ``BEGIN IMMEDIATE`` and commits or rolls back.
    A call made while a transaction is already open joins it through a
    ``SAVEPOINT``, so store functions compose inside transformer operations
    and a failure anywhere rolls the whole outer operation back.
    """
    lock = getattr(conn, "write_lock", None) or threading.RLock()
    with lock:
        if conn.in_transaction:
            name = f"sp_{next(_savepoint_ids)}"
            conn.execute(f"SAVEPOINT {name}")
            try:
                yield conn
            except BaseException:
                conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
                conn.execute(f"RELEASE SAVEPOINT {name}")
                raise
            conn.execute(f"RELEASE SAVEPOINT {name}")
            return

        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        conn.commit()


def utc_now() -> str:
    """ISO-8601 UTC timestamp with microseconds (sortable as text)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def touch_project(conn: sqlite3.Connection, project_id: str, timestamp: Optional[str] = None) -> str:
    """Bump ``projects.updated_at`` and return the new value.

    The new value is always strictly later than the stored one, even when
    the wall clock has not advanced between two writes.
    """
    now = timestamp or utc_now()
    row = conn.execute(
        "SELECT updated_at FROM projects WHERE project_id = ?", (project_id,)
    ).fetchone()
    if row is not None and row["updated_at"] >= now:
        later = datetime.fromisoformat(row["updated_at"]) + timedelta(microseconds=1)
        now = later.isoformat(timespec="microseconds")
    conn.execute(
        "UPDATE projects SET updated_at = ? WHERE project_id = ?", (now, project_id)
    )
    return now
