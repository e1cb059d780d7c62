"""Retain / insert / delete patches over string content.

A patch is a list of operations walked left-to-right against a cursor into
the base string:

``Retain(n)``
    Copy ``n`` characters from the cursor and advance it.
``Delete(n)``
    Advance the cursor by ``n`` without copying.
``Insert(text)``
    Emit ``text`` verbatim; the cursor does not move.

Whatever the operations leave unconsumed at the end of the base string is
appended automatically, so a patch never needs a trailing ``Retain``.

Round-trip contract::

    apply(before, diff(before, after)) == after
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from flowgraph.errors import InvalidOperation


@dataclass
class Retain:
    count: int


@dataclass
class Insert:
    text: str


@dataclass
class Delete:
    count: int


TextOperation = Union[Retain, Insert, Delete]


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

def _parse_count(kind: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidOperation(f"{kind} operation needs an integer count, got {value!r}")
    return value


def parse_operation(raw: Any) -> TextOperation:
    """Build one operation from a dataclass or either accepted dict shape.

    Accepted shapes: ``{"retain": 3}`` and ``{"op": "retain", "count": 3}``
    (``{"op": "insert", "text": "..."}`` for inserts).
    """
    if isinstance(raw, (Retain, Insert, Delete)):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidOperation(f"Unknown text operation: {raw!r}")

    if "op" in raw:
        kind = raw["op"]
        if kind == "insert":
            text = raw.get("text", "")
            if not isinstance(text, str):
                raise InvalidOperation("insert operation needs a string text")
            return Insert(text)
        if kind in ("retain", "delete"):
            count = _parse_count(kind, raw.get("count"))
            return Retain(count) if kind == "retain" else Delete(count)
        raise InvalidOperation(f"Unknown text operation: {raw!r}")

    if "insert" in raw:
        if not isinstance(raw["insert"], str):
            raise InvalidOperation("insert operation needs a string text")
        return Insert(raw["insert"])
    if "retain" in raw:
        return Retain(_parse_count("retain", raw["retain"]))
    if "delete" in raw:
        return Delete(_parse_count("delete", raw["delete"]))
    raise InvalidOperation(f"Unknown text operation: {raw!r}")


def parse_operations(raw: Optional[Iterable[Any]]) -> list[TextOperation]:
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, Mapping)):
        raise InvalidOperation("Text operations must be a list")
    return [parse_operation(item) for item in raw]


def operation_to_wire(op: TextOperation) -> dict[str, Any]:
    if isinstance(op, Retain):
        return {"retain": op.count}
    if isinstance(op, Delete):
        return {"delete": op.count}
    return {"insert": op.text}


def operations_to_wire(ops: Iterable[TextOperation]) -> list[dict[str, Any]]:
    return [operation_to_wire(op) for op in ops]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_operations(ops: Iterable[TextOperation]) -> list[TextOperation]:
    """Drop empty operations and coalesce adjacent ones of the same kind."""
    result: list[TextOperation] = []
    for op in ops:
        if isinstance(op, Insert):
            if not op.text:
                continue
            if result and isinstance(result[-1], Insert):
                result[-1] = Insert(result[-1].text + op.text)
            else:
                result.append(Insert(op.text))
            continue

        if op.count <= 0:
            continue
        last = result[-1] if result else None
        if last is not None and type(last) is type(op):
            result[-1] = type(op)(last.count + op.count)
        else:
            result.append(type(op)(op.count))
    return result


def diff(before: Optional[str], after: Optional[str]) -> list[TextOperation]:
    """Return the minimal single-region patch turning *before* into *after*.

    The common prefix and the (non-overlapping) common suffix are retained;
    the differing middle becomes one delete and/or one insert.
    """
    before = before or ""
    after = after or ""
    if before == after:
        return []

    prefix = 0
    limit = min(len(before), len(after))
    while prefix < limit and before[prefix] == after[prefix]:
        prefix += 1

    before_end = len(before)
    after_end = len(after)
    while (
        before_end > prefix
        and after_end > prefix
        and before[before_end - 1] == after[after_end - 1]
    ):
        before_end -= 1
        after_end -= 1

    ops: list[TextOperation] = []
    if prefix:
        ops.append(Retain(prefix))
    if before_end > prefix:
        ops.append(Delete(before_end - prefix))
    if after_end > prefix:
        ops.append(Insert(after[prefix:after_end]))
    if len(after) - after_end:
        ops.append(Retain(len(after) - after_end))
    return normalize_operations(ops)


def apply(base: str, operations: Optional[Iterable[Any]]) -> str:
    """Apply *operations* to *base* and return the patched string.

    Raises:
        InvalidOperation: on a negative count, a retain/delete running past
            the end of *base*, or an unrecognised operation.
    """
    ops = parse_operations(operations)
    if not ops:
        return base

    index = 0
    out: list[str] = []
    for op in ops:
        if isinstance(op, Insert):
            if op.text:
                out.append(op.text)
            continue

        kind = "Retain" if isinstance(op, Retain) else "Delete"
        if op.count < 0:
            raise InvalidOperation(f"{kind} operation must have non-negative count")
        end = index + op.count
        if end > len(base):
            raise InvalidOperation(f"{kind} operation exceeds base length")
        if isinstance(op, Retain):
            out.append(base[index:end])
        index = end

    if index < len(base):
        out.append(base[index:])
    return "".join(out)
