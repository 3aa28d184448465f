"""Callback endpoint the provider verifier uses during message pact verification.

The verifier posts `{"description": ...}` for each message in the pact; the
bridge runs the producer registered under that description and answers with
the message it produced, as JSON.
"""

from __future__ import annotations

import json
import socket
import threading
import time
from collections.abc import Callable, Mapping
from types import TracebackType
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from pactd.errors import LaunchError
from pactd.logging_config import get_logger
from pactd.utils.ports import bind_socket

log = get_logger(__name__)

MessageHandler = Callable[[], Any]

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def create_bridge_app(handlers: Mapping[str, MessageHandler]) -> FastAPI:
    app = FastAPI(title="pactd message bridge")

    @app.api_route("/{path:path}", methods=["GET", "POST"])
    async def dispatch(request: Request, path: str):
        raw = await request.body()
        try:
            message = json.loads(raw)
        except ValueError:
            log.warning("Message bridge received malformed body", path=path)
            return Response(status_code=400)

        description = message.get("description") if isinstance(message, dict) else None
        handler = handlers.get(description) if isinstance(description, str) else None
        if handler is None:
            log.warning("No message handler registered", description=description)
            return Response(status_code=404)

        try:
            result = await run_in_threadpool(handler)
        except Exception:
            log.exception("Message handler failed", description=description)
            return Response(status_code=503)

        try:
            body = json.dumps(result)
        except (TypeError, ValueError):
            log.exception("Message handler result is not JSON serialisable", description=description)
            return Response(status_code=503)

        log.debug("Sending message back to verifier", description=description)
        return Response(content=body, status_code=200, media_type=JSON_CONTENT_TYPE)

    return app


class MessageBridge:
    """Serve the bridge on `host:port` for the duration of a `with` block.

    The listening socket is bound in `open()`, so a port that is already in
    use fails there instead of inside the server thread.
    """

    def __init__(
        self,
        handlers: Mapping[str, MessageHandler],
        port: int = 9393,
        host: str = "localhost",
        network: str = "tcp",
    ):
        self.port = port
        self.host = host
        self.network = network
        self.app = create_bridge_app(handlers)
        self._sock: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    def open(self) -> MessageBridge:
        try:
            self._sock = bind_socket(self.port, self.host, self.network)
        except OSError as e:
            raise LaunchError(f"Unable to bind message bridge on {self.host}:{self.port}: {e}") from e

        config = uvicorn.Config(self.app, log_config=None)
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [self._sock]},
            name=f"message-bridge-{self.port}",
            daemon=True,
        )
        self._thread.start()
        log.debug("Message bridge starting", host=self.host, port=self.port)
        return self

    def wait_started(self, timeout: float = 10.0, interval: float = 0.05) -> bool:
        """Poll until the server accepts connections; False on timeout or if its thread died."""
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self._server is None or self._thread is None or not self._thread.is_alive():
                return False
            if self._server.started:
                return True
            time.sleep(interval)
        return False

    def __enter__(self) -> MessageBridge:
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        if self._sock is not None:
            self._sock.close()
        self._sock = None
        self._server = None
        self._thread = None
        log.debug("Message bridge closed", port=self.port)
