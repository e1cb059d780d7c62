"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``) and initialises the schema.  On
shutdown it closes the connection cleanly.  The connection's write lock
serialises transactions coming from different worker threads.

Routers
-------
Everything hangs under ``/projects``:

    /projects                         project lifecycle, import/export, clone
    /projects/{id}/nodes              node CRUD and cloning
    /projects/{id}/edges              edge creation / removal
    /projects/{id}/nodes/{node}/...   transformer operations
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flowgraph import __version__
from flowgraph.config import configure_logging
from flowgraph.db import get_connection, init_db
from flowgraph.errors import GraphError

from flowgraph.api.routers import edges as edges_router
from flowgraph.api.routers import nodes as nodes_router
from flowgraph.api.routers import projects as projects_router
from flowgraph.api.routers import transform as transform_router

logger = logging.getLogger(__name__)


async def graph_error_handler(request: Request, exc: GraphError) -> JSONResponse:
    logger.debug("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(db_path: Optional[Union[Path, str]] = None) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    Args:
        db_path: Database file to open at startup.  Defaults to
            ``settings.db_path``.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open the DB on startup and close it on shutdown."""
        conn = get_connection(db_path)
        init_db(conn)
        app.state.db = conn
        logger.info("flowgraph API ready")
        try:
            yield
        finally:
            conn.close()

    app = FastAPI(
        title="flowgraph API",
        description=(
            "REST interface for the flowgraph engine: projects, nodes, edges "
            "and the transformer operations that generate laid-out subgraphs."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GraphError, graph_error_handler)

    app.include_router(projects_router.router, prefix="/projects", tags=["projects"])
    app.include_router(nodes_router.router, prefix="/projects", tags=["nodes"])
    app.include_router(edges_router.router, prefix="/projects", tags=["edges"])
    app.include_router(transform_router.router, prefix="/projects", tags=["transform"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn flowgraph.api.app:app --reload
app = create_app()
