"""Text and segment-tree helpers shared by the transformer operations."""

from __future__ import annotations

import re
from typing import Iterable, Mapping, Optional

from flowgraph.transformer.models import PreviewSegment, Segment

MAX_TITLE_LENGTH = 80

NODE_TYPE_COLORS = {
    "input": "#10b981",
    "output": "#f59e0b",
    "ai": "#8b5cf6",
    "ai_improved": "#8b5cf6",
    "text": "#64748b",
    "file": "#f59e0b",
    "image": "#ec4899",
    "video": "#06b6d4",
    "audio": "#84cc16",
    "html": "#f97316",
    "transformer": "#3b82f6",
}
FALLBACK_TYPE_COLOR = "#6b7280"

_TITLE_CLEANERS = (
    (re.compile(r"^#+\s*"), ""),
    (re.compile(r"^\d+[.)]\s*"), ""),
    (re.compile(r"^[-*•]+\s*"), ""),
    (re.compile(r"[`*_]+"), ""),
    (re.compile(r"\s+"), " "),
)


def node_type_color(node_type: str) -> str:
    return NODE_TYPE_COLORS.get(node_type, FALLBACK_TYPE_COLOR)


def normalize_newlines(content: str) -> str:
    return content.replace("\r\n", "\n")


def split_content_by_delimiter(content: str, delimiter: str) -> list[str]:
    """Split on *delimiter* (with any surrounding whitespace), dropping empty parts.

    A blank delimiter returns the whole trimmed text as a single part.
    """
    normalized = normalize_newlines(content)
    token = delimiter.strip()
    if not token:
        single = normalized.strip()
        return [single] if single else []
    pattern = re.compile(r"\s*" + re.escape(token) + r"\s*")
    return [part.strip() for part in pattern.split(normalized) if part.strip()]


def clamp_title(value: str) -> str:
    trimmed = value.strip()
    if len(trimmed) <= MAX_TITLE_LENGTH:
        return trimmed
    return trimmed[: MAX_TITLE_LENGTH - 3].rstrip() + "…"


def derive_fallback_title(path: str) -> str:
    """``"0"`` -> ``Segment 1``; ``"1.0"`` -> ``Sub-segment 2.1``."""
    parts = [str(int(p) + 1) if p.isdigit() else p for p in path.split(".")]
    if len(parts) <= 1:
        return f"Segment {parts[0]}"
    return f"Sub-segment {'.'.join(parts)}"


def extract_title_from_content(content: str) -> Optional[str]:
    """First non-blank line stripped of heading, list and emphasis markers."""
    for line in normalize_newlines(content).strip().split("\n"):
        cleaned = line.strip()
        if not cleaned:
            continue
        for pattern, replacement in _TITLE_CLEANERS:
            cleaned = pattern.sub(replacement, cleaned)
        cleaned = cleaned.strip()
        if cleaned:
            return cleaned
    return None


def flatten_segments(segments: Iterable[Segment]) -> list[Segment]:
    """Depth-first, parents before their children."""
    result: list[Segment] = []
    stack = list(reversed(list(segments)))
    while stack:
        segment = stack.pop()
        result.append(segment)
        stack.extend(reversed(segment.children))
    return result


def build_preview_tree(
    segments: Iterable[Segment], title_by_path: Mapping[str, str]
) -> list[PreviewSegment]:
    return [
        PreviewSegment(
            path=s.path,
            depth=s.depth,
            order=s.order,
            title=title_by_path.get(s.path) or derive_fallback_title(s.path),
            content=s.content,
            children=build_preview_tree(s.children, title_by_path),
        )
        for s in segments
    ]
