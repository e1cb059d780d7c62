"""Error taxonomy shared by the store, the transformer and the adapters.

Every error carries the HTTP status the REST layer answers with, so the
API needs a single exception handler instead of one ``try`` per endpoint.
"""

from __future__ import annotations


class GraphError(Exception):
    """Base class for all engine failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(GraphError):
    """A referenced project, node or edge does not exist."""

    status_code = 404


class Conflict(GraphError):
    """A caller-supplied identifier collides with an existing one."""

    status_code = 409


class InvalidInput(GraphError, ValueError):
    """Malformed payload: bad tree shape, empty split target, bad UI numbers."""

    status_code = 400


class InvalidOperation(GraphError, ValueError):
    """A text operation cannot be applied to its base string."""

    status_code = 400
