"""Builders that turn generated content into laid-out subgraphs.

* :func:`import_json_tree`: a JSON node tree becomes a staggered tree of
  nodes hanging off an anchor node.
* :func:`preview_text_split` / :func:`split_text_node`: a text node is cut
  into a two-level hierarchy of segment nodes.
* :func:`create_single_text_node`: one node placed next to its source.
"""

from flowgraph.transformer.json_tree import import_json_tree
from flowgraph.transformer.text_split import (
    create_single_text_node,
    preview_text_split,
    sanitize_text_split_config,
    split_text_node,
)

__all__ = [
    "create_single_text_node",
    "import_json_tree",
    "preview_text_split",
    "sanitize_text_split_config",
    "split_text_node",
]
