# tool_exporter/api/app.py
"""
FastAPI application factory.

The lifecycle is injected so tests can start it themselves; when
manage_lifecycle is True the app starts and stops it in its lifespan.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tool_exporter import __version__
from tool_exporter.api.routes import router
from tool_exporter.background.lifecycle import ServiceLifecycle
from tool_exporter.errors import ExportError, InvalidTransition, JobNotFound, PreflightFailed

logger = logging.getLogger(__name__)


def _status_for(exc: ExportError) -> int:
    if isinstance(exc, JobNotFound):
        return 404
    if isinstance(exc, InvalidTransition):
        return 409
    if isinstance(exc, PreflightFailed):
        return 404 if exc.not_found else 400
    return 500


def create_app(lifecycle: ServiceLifecycle, manage_lifecycle: bool = True) -> FastAPI:
    """
    Build the HTTP API around a service lifecycle.

    Args:
        lifecycle: Wired service (store, runner, packager)
        manage_lifecycle: Run startup()/shutdown() in the app lifespan
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await lifecycle.startup()
        logger.info("HTTP API ready")
        try:
            yield
        finally:
            if manage_lifecycle:
                await lifecycle.shutdown()

    app = FastAPI(title="tool-exporter", version=__version__, lifespan=lifespan)
    app.state.lifecycle = lifecycle
    app.include_router(router)

    @app.exception_handler(ExportError)
    async def export_error_handler(request: Request, exc: ExportError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    return app
