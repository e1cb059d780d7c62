"""Utilities for rendering project graphs in the CLI."""

from __future__ import annotations

from flowgraph.db.models import Edge, Node


def render_tree(nodes: list[Node], edges: list[Edge]) -> str:
    """Render a project graph as an ASCII forest.

    Roots are nodes without incoming edges (or every node, when the graph is
    one big cycle).  A node reached a second time is printed once more with
    a ``(see above)`` marker and not expanded again.
    """
    node_map = {n.node_id: n for n in nodes}
    children: dict[str, list[Edge]] = {}
    has_parent: set[str] = set()
    for edge in edges:
        children.setdefault(edge.from_node, []).append(edge)
        has_parent.add(edge.to_node)

    roots = [n.node_id for n in nodes if n.node_id not in has_parent] or [n.node_id for n in nodes[:1]]
    lines: list[str] = []
    visited: set[str] = set()

    def _label(node_id: str) -> str:
        node = node_map.get(node_id)
        if node is None:
            return f"? {node_id}"
        return f"[{node.type}] {node.title} ({node_id})"

    def _render(node_id: str, via: str, prefix: str, is_last: bool, is_root: bool) -> None:
        connector = "" if is_root else ("└── " if is_last else "├── ")
        if node_id in visited:
            lines.append(f"{prefix}{connector}{via}{_label(node_id)} (see above)")
            return
        visited.add(node_id)
        lines.append(f"{prefix}{connector}{via}{_label(node_id)}")

        child_prefix = "" if is_root else prefix + ("    " if is_last else "│   ")
        outgoing = children.get(node_id, [])
        for i, edge in enumerate(outgoing):
            handle = f"{edge.source_handle} " if edge.source_handle else ""
            via_label = f"{handle}{edge.label} " if edge.label else handle
            _render(edge.to_node, f"-{via_label}-> " if via_label else "", child_prefix, i == len(outgoing) - 1, False)

    for root in roots:
        _render(root, "", "", True, True)
    for node in nodes:
        if node.node_id not in visited:
            _render(node.node_id, "", "", True, True)
    return "\n".join(lines)
