"""flowgraph CLI: entry-point for working with graph projects.

Usage:
    flowgraph --help
    python -m cli.main --help

Command groups:
    db       → schema initialisation
    project  → create, list, show and export projects
    graph    → add nodes, connect them, split text and import JSON trees
"""

from __future__ import annotations

from typing import Optional

import typer

from flowgraph.config import configure_logging, settings
from flowgraph.db import get_connection, init_db

from cli.commands.graph import graph_app
from cli.commands.project import project_app

app = typer.Typer(
    name="flowgraph",
    help="flowgraph graph engine CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override FLOWGRAPH_LOG_LEVEL."),
) -> None:
    configure_logging(log_level)


db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")
app.add_typer(project_app, name="project")
app.add_typer(graph_app, name="graph")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
