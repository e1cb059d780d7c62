"""Database layer package.

Public re-exports so callers can write::

    from flowgraph.db import get_connection, init_db, transaction
    from flowgraph.db import nodes, edges, projects
"""

from flowgraph.db.connection import get_connection, transaction
from flowgraph.db.migrations import init_db

__all__ = ["get_connection", "init_db", "transaction"]
