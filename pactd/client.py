from __future__ import annotations

from typing import Any

import requests
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from pactd.errors import ERRORS_BY_KIND, PactError, ProtocolError, ValidationError
from pactd.logging_config import get_logger
from pactd.types import (
    CommandResponse,
    MockServer,
    PactListResponse,
    PactMessageRequest,
    ProviderVerifierResponse,
    StartServerRequest,
    VerifyRequest,
)
from pactd.utils.ports import wait_for_port

log = get_logger(__name__)


class PactClient:
    """HTTP client for a running pact daemon.

    Daemon-side failures come back as the same `PactError` subclass that was
    raised on the daemon; transport problems raise `ProtocolError`.
    """

    def __init__(
        self,
        port: int = 6666,
        host: str = "localhost",
        network: str = "tcp",
        request_timeout: float = 60.0,
        daemon_wait_timeout: float = 10.0,
    ):
        self.port = port
        self.host = host
        self.network = network
        self.request_timeout = request_timeout
        self.daemon_wait_timeout = daemon_wait_timeout
        self._daemon_seen = False

    @property
    def base_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"

    # ----------------
    # -- Public API --
    # ----------------
    def start_server(self, args: list[str], port: int) -> MockServer:
        payload = StartServerRequest(args=args, port=port)
        server = self._call("POST", "/api/servers/start", payload, MockServer)
        log.debug("Mock server started", pid=server.pid, port=server.port)
        return server

    def stop_server(self, server: MockServer) -> MockServer:
        return self._call("POST", "/api/servers/stop", server, MockServer)

    def list_servers(self) -> PactListResponse:
        return self._call("GET", "/api/servers", None, PactListResponse)

    def verify_provider(self, request: VerifyRequest) -> ProviderVerifierResponse:
        # Verification runs as long as the verifier does
        return self._call("POST", "/api/verify", request, ProviderVerifierResponse, long_running=True)

    def update_message_pact(self, request: PactMessageRequest) -> CommandResponse:
        return self._call("POST", "/api/messages", request, CommandResponse, long_running=True)

    def stop_daemon(self) -> None:
        self._call("POST", "/api/daemon/stop", None, None)

    # --------------
    # -- Internal --
    # --------------
    def _call(
        self,
        method: str,
        path: str,
        payload: BaseModel | None,
        response_model: type[BaseModel] | None,
        long_running: bool = False,
    ) -> Any:
        self._wait_for_daemon()

        url = f"{self.base_url}{path}"
        body = payload.model_dump(mode="json", by_alias=True) if payload is not None else None
        try:
            response = requests.request(
                method,
                url,
                json=body,
                timeout=None if long_running else self.request_timeout,
            )
        except requests.RequestException as e:
            raise ProtocolError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400:
            raise _error_from_response(response)

        if response_model is None:
            return None

        try:
            return response_model.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise ProtocolError(f"Malformed response from {url}: {e}") from e

    def _wait_for_daemon(self) -> None:
        if self._daemon_seen:
            return

        if not wait_for_port(self.port, self.host, self.network, timeout=self.daemon_wait_timeout):
            raise ProtocolError(f"Timed out waiting for Daemon on port {self.port} - are you sure it's running?")

        self._daemon_seen = True


def _error_from_response(response: requests.Response) -> PactError:
    try:
        body = response.json()
    except ValueError:
        body = None

    if not isinstance(body, dict):
        return ProtocolError(f"Daemon responded {response.status_code}: {response.text}")

    if response.status_code == 422:
        return ValidationError(f"Daemon rejected request: {body.get('detail')}")

    error_class = ERRORS_BY_KIND.get(body.get("kind", ""), ProtocolError)
    detail = body.get("detail") or body.get("error") or response.text
    return error_class(detail)
