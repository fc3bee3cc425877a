"""Map core exceptions onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cascade.errors import ExportError, ImageFetchError, NotFoundError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ImageFetchError)
    async def _image_fetch(request: Request, exc: ImageFetchError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(ExportError)
    async def _export(request: Request, exc: ExportError) -> JSONResponse:
        logger.error("Export failed on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})
