"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from flowgraph.api import app

    uvicorn flowgraph.api:app --reload
"""

from flowgraph.api.app import app
