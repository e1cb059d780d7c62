"""Shared fixtures.

Every DB test gets a private in-memory SQLite database with the schema
applied, so nothing is ever written to ``~/.flowgraph_data``.
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from flowgraph.db.connection import get_connection
from flowgraph.db.migrations import init_db
from flowgraph.db.models import Project
from flowgraph.db.projects import create_project


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def project(conn: sqlite3.Connection) -> Project:
    return create_project(conn, "Demo", project_id="p1")


@pytest.fixture()
def workspace(tmp_path, monkeypatch):
    """Point the settings singleton at a temporary workspace directory."""
    monkeypatch.setattr("flowgraph.config.settings.workspace_dir", tmp_path)
    return tmp_path
