"""Project management commands."""

import json
from pathlib import Path
from typing import Optional

import typer

from flowgraph.db.projects import create_project, export_project, list_projects, require_project
from cli.rendering import render_tree
from cli.session import open_db

project_app = typer.Typer(help="Manage graph projects.", no_args_is_help=True)


@project_app.command("new")
def project_new(
    title: str = typer.Argument(..., help="Title of the new project."),
    description: str = typer.Option("", "--description", "-d", help="Free-form description."),
    project_id: Optional[str] = typer.Option(None, "--id", help="Explicit project id."),
) -> None:
    """Create a new, empty project."""
    with open_db() as conn:
        project = create_project(conn, title, description=description, project_id=project_id)
        typer.echo(f"✅ Project created: {project.title} ({project.project_id})")


@project_app.command("list")
def project_list() -> None:
    """List all projects, most recently updated first."""
    with open_db() as conn:
        projects = list_projects(conn)
        if not projects:
            typer.echo("No projects found.")
            return
        typer.echo("Projects:")
        for p in projects:
            typer.echo(f"  {p.title} \t[{p.project_id}]  updated {p.updated_at}")


@project_app.command("show")
def project_show(
    project_id: str = typer.Argument(..., help="Project id."),
) -> None:
    """Print the project graph as a tree."""
    with open_db() as conn:
        project = require_project(conn, project_id)
        typer.echo(f"\n📊 Project: {project.title}")
        typer.echo(f"   ID: {project.project_id}")
        typer.echo(f"   Nodes: {len(project.nodes)}  Edges: {len(project.edges)}")
        typer.echo("-" * 40)
        if project.nodes:
            typer.echo(render_tree(project.nodes, project.edges))
        else:
            typer.echo("(empty)")


@project_app.command("export")
def project_export(
    project_id: str = typer.Argument(..., help="Project id."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to this file instead of stdout."),
) -> None:
    """Export a project as a JSON flow document."""
    with open_db() as conn:
        flow = export_project(conn, project_id)
    text = json.dumps(flow, indent=2, ensure_ascii=False)
    if output is None:
        typer.echo(text)
        return
    output.write_text(text, encoding="utf-8")
    typer.echo(f"✅ Exported {project_id} to {output}")
