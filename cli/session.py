"""Shared plumbing for CLI commands: DB access and error reporting."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

import typer

from flowgraph.db import get_connection, init_db
from flowgraph.errors import GraphError


@contextmanager
def open_db() -> Iterator[sqlite3.Connection]:
    """Open the workspace DB, make sure the schema exists and always close it.

    A :class:`GraphError` raised inside the block is printed and turned into
    exit code 1.
    """
    conn = get_connection()
    init_db(conn)
    try:
        yield conn
    except GraphError as exc:
        typer.echo(f"❌ {exc.message}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        conn.close()
