"""Commands that edit a project graph."""

import json
from pathlib import Path
from typing import Optional

import typer

from flowgraph.db.edges import create_edge
from flowgraph.db.nodes import create_node
from flowgraph.transformer import import_json_tree, split_text_node
from cli.session import open_db

graph_app = typer.Typer(help="Add nodes, connect them and generate subgraphs.", no_args_is_help=True)


@graph_app.command("add-node")
def graph_add_node(
    project_id: str = typer.Argument(..., help="Project id."),
    title: str = typer.Option(..., "--title", help="Node title."),
    node_type: str = typer.Option("text", "--type", help="Node type (text, ai, image, ...)."),
    content: Optional[str] = typer.Option(None, "--content", help="Inline text content."),
    x: Optional[float] = typer.Option(None, "--x", help="Left edge on the canvas."),
    y: Optional[float] = typer.Option(None, "--y", help="Top edge on the canvas."),
) -> None:
    """Create a node."""
    position = {"x": x, "y": y} if x is not None and y is not None else None
    data = {"type": node_type, "title": title}
    if content is not None:
        data["content"] = content
        data["content_type"] = "text/plain"
    with open_db() as conn:
        result = create_node(conn, project_id, data, position=position)
        typer.echo(f"✅ Node created: {result.node.node_id}  title={result.node.title!r}")


@graph_app.command("connect")
def graph_connect(
    project_id: str = typer.Argument(..., help="Project id."),
    from_node: str = typer.Argument(..., help="Source node id."),
    to_node: str = typer.Argument(..., help="Target node id."),
    label: Optional[str] = typer.Option(None, "--label", help="Edge label."),
    source_handle: Optional[str] = typer.Option(None, "--source-handle", help="Output port on the source."),
    target_handle: Optional[str] = typer.Option(None, "--target-handle", help="Input port on the target."),
) -> None:
    """Connect two nodes with a directed edge."""
    with open_db() as conn:
        result = create_edge(
            conn,
            project_id,
            from_node,
            to_node,
            label=label,
            source_handle=source_handle,
            target_handle=target_handle,
        )
    if result.notification is not None:
        typer.echo(f"⚠️  {result.notification.message}")
    else:
        typer.echo(f"🔗 Connected {result.edge.edge_id}")


@graph_app.command("split")
def graph_split(
    project_id: str = typer.Argument(..., help="Project id."),
    node_id: str = typer.Argument(..., help="Text node to split."),
    separator: str = typer.Option("---", "--separator", help="Top-level delimiter."),
    sub_separator: str = typer.Option("-", "--sub-separator", help="Second-level delimiter; empty to disable."),
) -> None:
    """Split a text node into segment nodes."""
    with open_db() as conn:
        result = split_text_node(
            conn,
            project_id,
            node_id,
            config={"separator": separator, "sub_separator": sub_separator},
        )
    for line in result.logs:
        typer.echo(f"  {line}")
    typer.echo(f"✂️  {len(result.created_nodes)} segment node(s) created from {node_id}")


@graph_app.command("import-tree")
def graph_import_tree(
    project_id: str = typer.Argument(..., help="Project id."),
    anchor_id: str = typer.Argument(..., help="Node the new tree hangs off."),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with the node tree."),
) -> None:
    """Create nodes from a JSON tree ({"nodes": [...]} or a bare list)."""
    payload = path.read_text(encoding="utf-8")
    with open_db() as conn:
        result = import_json_tree(conn, project_id, anchor_id, payload)
    typer.echo(f"🌳 Imported {len(result.created_nodes)} node(s) under {anchor_id}")
    typer.echo(json.dumps([n.to_dict() for n in result.created_nodes], indent=2, ensure_ascii=False))
