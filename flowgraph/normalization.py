"""Coercion of partial / untrusted shape data into canonical structures.

Everything here is pure: no DB access, no logging side effects.  The store
runs every UI descriptor and connection list through these functions before
it is persisted or returned, so the invariants below hold for every node the
engine ever hands out:

* ``ui.color`` is a 3- or 6-digit hex colour;
* ``ui.bbox`` has finite coordinates with ``x2 > x1`` and ``y2 > y1``;
* connection entries carry non-empty ``edge_id`` and endpoint ids.

Patch semantics (``merge_*``): a key set to ``None`` resets that part to the
engine default, a missing key keeps the current value, anything else
replaces it before re-normalising.
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping, Optional

from flowgraph.db.models import (
    DEFAULT_NODE_COLOR,
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    BBox,
    IncomingConnection,
    NodeConnections,
    NodeUI,
    OutgoingConnection,
)
from flowgraph.errors import InvalidInput

COLOR_RE = re.compile(r"^#(?:[0-9a-f]{3}|[0-9a-f]{6})$", re.IGNORECASE)

_COORDS = ("x1", "y1", "x2", "y2")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

def default_ui() -> NodeUI:
    return NodeUI(color=DEFAULT_NODE_COLOR, bbox=BBox())


def default_connections() -> NodeConnections:
    return NodeConnections(incoming=[], outgoing=[])


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _pick_number(candidate: Any, fallback: float) -> float:
    return candidate if _is_finite_number(candidate) else fallback


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _as_mapping(value: Any) -> Optional[Mapping[str, Any]]:
    """Accept dicts as well as the dataclass views the store hands out."""
    if value is None:
        return None
    if isinstance(value, NodeUI):
        return {"color": value.color, "bbox": _as_mapping(value.bbox)}
    if isinstance(value, BBox):
        return {k: getattr(value, k) for k in _COORDS}
    if isinstance(value, NodeConnections):
        return {"incoming": list(value.incoming), "outgoing": list(value.outgoing)}
    if isinstance(value, Mapping):
        return value
    return None


def _entry_fields(raw: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(raw, IncomingConnection):
        return {"edge_id": raw.edge_id, "from": raw.from_node, "routing": raw.routing}
    if isinstance(raw, OutgoingConnection):
        return {"edge_id": raw.edge_id, "to": raw.to_node, "routing": raw.routing}
    if isinstance(raw, Mapping):
        return raw
    return None


def _sanitize_incoming(values: list[Any]) -> list[IncomingConnection]:
    result: list[IncomingConnection] = []
    for raw in values:
        entry = _entry_fields(raw)
        if entry is None:
            continue
        edge_id, source, routing = entry.get("edge_id"), entry.get("from"), entry.get("routing")
        if not _is_non_empty_string(edge_id) or not _is_non_empty_string(source):
            continue
        result.append(
            IncomingConnection(
                edge_id=edge_id.strip(),
                from_node=source.strip(),
                routing=routing.strip() if isinstance(routing, str) else "",
            )
        )
    return result


def _sanitize_outgoing(values: list[Any]) -> list[OutgoingConnection]:
    result: list[OutgoingConnection] = []
    for raw in values:
        entry = _entry_fields(raw)
        if entry is None:
            continue
        edge_id, target, routing = entry.get("edge_id"), entry.get("to"), entry.get("routing")
        if not _is_non_empty_string(edge_id) or not _is_non_empty_string(target):
            continue
        result.append(
            OutgoingConnection(
                edge_id=edge_id.strip(),
                to_node=target.strip(),
                routing=routing.strip() if isinstance(routing, str) else "",
            )
        )
    return result


def assert_valid_ui(ui: NodeUI) -> None:
    """Raise :class:`InvalidInput` unless *ui* satisfies every UI invariant."""
    if not COLOR_RE.match(ui.color):
        raise InvalidInput(f"Invalid node color: {ui.color!r}")
    for name in _COORDS:
        if not _is_finite_number(getattr(ui.bbox, name)):
            raise InvalidInput(f"bbox.{name} must be a finite number")
    if ui.bbox.x2 <= ui.bbox.x1:
        raise InvalidInput(
            f"Invalid node bbox: x2 ({ui.bbox.x2}) must be greater than x1 ({ui.bbox.x1})"
        )
    if ui.bbox.y2 <= ui.bbox.y1:
        raise InvalidInput(
            f"Invalid node bbox: y2 ({ui.bbox.y2}) must be greater than y1 ({ui.bbox.y1})"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_ui(partial: Any = None) -> NodeUI:
    """Return a canonical :class:`NodeUI` built from a partial descriptor.

    Invalid colours fall back to the default colour, non-finite coordinates
    fall back per field to the default bbox, and an inverted or empty
    width/height is repaired by extending ``x2``/``y2`` from ``x1``/``y1``
    by the default node size.

    Raises:
        InvalidInput: if the repaired structure still breaks an invariant.
    """
    base = default_ui()
    source = _as_mapping(partial)
    if source is None:
        return base

    raw_color = source.get("color")
    color = raw_color.strip() if isinstance(raw_color, str) else base.color
    if not COLOR_RE.match(color):
        color = DEFAULT_NODE_COLOR

    raw_bbox = _as_mapping(source.get("bbox")) or {}
    bbox = BBox(
        **{name: _pick_number(raw_bbox.get(name), getattr(base.bbox, name)) for name in _COORDS}
    )
    if bbox.x2 <= bbox.x1:
        bbox.x2 = bbox.x1 + DEFAULT_NODE_WIDTH
    if bbox.y2 <= bbox.y1:
        bbox.y2 = bbox.y1 + DEFAULT_NODE_HEIGHT

    ui = NodeUI(color=color, bbox=bbox)
    assert_valid_ui(ui)
    return ui


def merge_ui(current: NodeUI, patch: Any) -> NodeUI:
    """Apply a partial UI patch on top of *current*."""
    if patch is None:
        return default_ui()
    source = _as_mapping(patch)
    if source is None:
        return normalize_ui(current)

    defaults = default_ui()
    if "color" not in source:
        color = current.color
    elif source["color"] is None:
        color = defaults.color
    else:
        color = source["color"]

    if "bbox" not in source:
        bbox = current.bbox
    elif source["bbox"] is None:
        bbox = defaults.bbox
    else:
        bbox_patch = _as_mapping(source["bbox"]) or {}
        coords: dict[str, float] = {}
        for name in _COORDS:
            if name not in bbox_patch:
                coords[name] = getattr(current.bbox, name)
            elif bbox_patch[name] is None:
                coords[name] = getattr(defaults.bbox, name)
            else:
                coords[name] = _pick_number(bbox_patch[name], getattr(current.bbox, name))
        bbox = BBox(**coords)

    return normalize_ui({"color": color, "bbox": bbox})


def normalize_connections(partial: Any = None) -> NodeConnections:
    """Drop malformed entries; a missing list becomes an empty one."""
    source = _as_mapping(partial)
    if source is None:
        return default_connections()
    incoming = source.get("incoming")
    outgoing = source.get("outgoing")
    return NodeConnections(
        incoming=_sanitize_incoming(incoming) if isinstance(incoming, list) else [],
        outgoing=_sanitize_outgoing(outgoing) if isinstance(outgoing, list) else [],
    )


def merge_connections(current: NodeConnections, patch: Any) -> NodeConnections:
    """Apply a partial connections patch on top of *current*."""
    if patch is None:
        return default_connections()
    source = _as_mapping(patch)
    if source is None:
        return normalize_connections(current)

    merged: dict[str, Any] = {}
    for key, existing in (("incoming", current.incoming), ("outgoing", current.outgoing)):
        if key not in source:
            merged[key] = list(existing)
        elif source[key] is None:
            merged[key] = []
        else:
            merged[key] = source[key]
    return normalize_connections(merged)


def round_half_up(value: float) -> int:
    """Round like a canvas does: halves go towards positive infinity."""
    return math.floor(value + 0.5)


def normalize_ai_visible(value: Any) -> bool:
    """Booleans pass through, numbers map to ``value != 0``, anything else is True."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return True
