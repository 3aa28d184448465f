from __future__ import annotations

import os
from collections.abc import Callable
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pactd import __version__
from pactd.daemon.web.control import router as control_router
from pactd.daemon.web.messages import router as messages_router
from pactd.daemon.web.servers import router as servers_router
from pactd.daemon.web.verification import router as verification_router
from pactd.errors import PactError
from pactd.logging_config import get_logger

if TYPE_CHECKING:
    from pactd.daemon.daemon import Daemon

logger = get_logger(__name__)


def create_app(daemon: Daemon) -> FastAPI:
    """Factory function to create the FastAPI app exposing a daemon's operations."""
    app = FastAPI(title="pactd", version=__version__)
    app.state.daemon = daemon

    @app.exception_handler(PactError)
    async def pact_error_handler(request: Request, exc: PactError):
        logger.warning(
            "Remote operation failed",
            url=str(request.url),
            error=exc.kind,
            detail=str(exc),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"kind": exc.kind, "detail": str(exc)},
        )

    @app.middleware("http")
    async def add_pactd_version(request: Request, call_next: Callable):
        logger.debug(
            "Processing request",
            method=request.method,
            url=str(request.url),
            client_host=request.client.host if request.client else None,
        )

        response = await call_next(request)
        response.headers["X-Pactd-Version"] = __version__

        logger.debug(
            "Request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
        )
        return response

    @app.get("/api/healthcheck")
    def health(request: Request):
        managers = request.app.state.daemon.managers
        return {
            "status": "healthy",
            "process_id": os.getpid(),
            "service": "pactd",
            "version": __version__,
            "processes": {kind.value: len(manager.list()) for kind, manager in managers.items()},
        }

    app.include_router(servers_router, prefix="/api/servers", tags=["Mock Servers"])
    app.include_router(verification_router, prefix="/api/verify", tags=["Verification"])
    app.include_router(messages_router, prefix="/api/messages", tags=["Messages"])
    app.include_router(control_router, prefix="/api/daemon", tags=["Daemon"])

    return app
