"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``), initialises the schema and makes
sure the inbox exists.  It then wires the execution contexts together: a
:class:`~cascade.relay.bus.MessageBus`, the background service listening
on it and the ingestion router subscribed to its broadcasts.  On shutdown
everything is torn down in reverse order.

Routers
-------
    /projects  — project CRUD, node ordering and canvas export
    /nodes     — node lookup, text edits, delete with undo
    /ingest    — drops, pastes and uploads
    /relay     — messages from the capture script to the background context
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cascade import __version__
from cascade.api.errors import register_exception_handlers
from cascade.api.routers import ingest as ingest_router
from cascade.api.routers import nodes as nodes_router
from cascade.api.routers import projects as projects_router
from cascade.api.routers import relay as relay_router
from cascade.config import configure_logging
from cascade.db import get_connection, init_db
from cascade.db.projects import ensure_inbox
from cascade.db.undo import UndoBuffer
from cascade.ingest.router import IngestionRouter
from cascade.relay.background import BackgroundService
from cascade.relay.bus import MessageBus

logger = logging.getLogger(__name__)


def create_app(conn: Optional[sqlite3.Connection] = None) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    Pass *conn* to run against an existing connection (tests use an
    in-memory database); it is left open on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        db = conn if conn is not None else get_connection()
        init_db(db)
        ensure_inbox(db)

        bus = MessageBus()
        background = BackgroundService(bus).start()
        ingestion = IngestionRouter(db, bus)

        app.state.db = db
        app.state.bus = bus
        app.state.background = background
        app.state.ingestion = ingestion
        app.state.undo = UndoBuffer()
        logger.info("Cascade API ready")
        try:
            yield
        finally:
            await bus.drain()
            ingestion.close()
            background.stop()
            if conn is None:
                db.close()

    app = FastAPI(
        title="Cascade API",
        description=(
            "REST interface for the Cascade capture workspace. Exposes "
            "projects and their ordered nodes, drop/paste ingestion, the "
            "background relay and Obsidian canvas export."
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
    register_exception_handlers(app)

    app.include_router(projects_router.router, prefix="/projects", tags=["projects"])
    app.include_router(nodes_router.router, prefix="/nodes", tags=["nodes"])
    app.include_router(ingest_router.router, prefix="/ingest", tags=["ingest"])
    app.include_router(relay_router.router, prefix="/relay", tags=["relay"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn cascade.api.app:app --reload
app = create_app()
