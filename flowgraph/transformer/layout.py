"""Placement math for generated subgraphs.

Two layouts live here:

* the staggered left-to-right tree used by JSON-tree import, where siblings
  alternate above and below their parent and every other level is nudged
  vertically so long edges do not overlap;
* the split layout, which stacks segments in a column to the right of the
  source node, centred on it, with each level of sub-segments one column
  further right and centred on its parent.
"""

from __future__ import annotations

from typing import Iterable

from flowgraph.db.models import BBox
from flowgraph.normalization import round_half_up
from flowgraph.transformer.models import Placement, Segment

# JSON-tree layout
LEVEL_SPACING = 500
NODE_SPACING = 200
STAGGER_OFFSET = 120
VERTICAL_PADDING = 50

# Split layout
SEGMENT_NODE_WIDTH = 450
SEGMENT_NODE_HEIGHT = 200
BASE_HORIZONTAL_OFFSET = 120
LEVEL_HORIZONTAL_STEP = SEGMENT_NODE_WIDTH + 160
TOP_LEVEL_VERTICAL_SPACING = SEGMENT_NODE_HEIGHT + 160
CHILD_LEVEL_VERTICAL_SPACING = SEGMENT_NODE_HEIGHT + 140


def staggered_y(base_y: float, index: int, siblings: int, depth: int) -> float:
    """Vertical position of sibling *index* of *siblings* at tree *depth* (roots are 1).

    A lone child stays level with its parent.
    """
    if siblings <= 1:
        return base_y
    step = (index // 2) * NODE_SPACING
    if index % 2 == 0:
        y = base_y - step - VERTICAL_PADDING
    else:
        y = base_y + step + NODE_SPACING + VERTICAL_PADDING
    if depth > 1:
        y += STAGGER_OFFSET if depth % 2 == 0 else -STAGGER_OFFSET
    return y


def _centered_offset(order: int, siblings: int, spacing: int) -> float:
    if siblings <= 1:
        return 0
    return (order - (siblings - 1) / 2) * spacing


def compute_placements(source: BBox, plan: Iterable[Segment]) -> list[Placement]:
    """Place every segment of a flattened plan relative to the *source* bbox.

    Parents must precede their children in *plan*.
    """
    source_center = (source.y1 + source.y2) / 2
    placements: list[Placement] = []
    by_path: dict[str, Placement] = {}

    for segment in plan:
        siblings = max(segment.siblings, 1)
        x = round_half_up(source.x2 + BASE_HORIZONTAL_OFFSET + segment.depth * LEVEL_HORIZONTAL_STEP)
        if segment.depth == 0:
            center = source_center + _centered_offset(segment.order, siblings, TOP_LEVEL_VERTICAL_SPACING)
        else:
            parent = by_path.get(segment.parent_path or "")
            parent_center = parent.y + SEGMENT_NODE_HEIGHT / 2 if parent else source_center
            center = parent_center + _centered_offset(segment.order, siblings, CHILD_LEVEL_VERTICAL_SPACING)

        placement = Placement(segment=segment, x=x, y=round_half_up(center - SEGMENT_NODE_HEIGHT / 2))
        placements.append(placement)
        by_path[segment.path] = placement
    return placements
