from __future__ import annotations

import signal
import threading
from collections.abc import Mapping

import uvicorn

from pactd.daemon.app import create_app
from pactd.daemon.verifier import verify_provider
from pactd.errors import PactError
from pactd.logging_config import flush_logs, get_logger
from pactd.service.protocols import ManagerKind, ServiceManagerConfig, ServiceManagerLike
from pactd.services.message import MessageServiceManager
from pactd.services.mock_service import MockServiceManager
from pactd.services.verification import VerificationServiceManager
from pactd.types import (
    STATUS_FAILED,
    STATUS_OK,
    STATUS_UNKNOWN,
    CommandResponse,
    MockServer,
    PactListResponse,
    PactMessageRequest,
    ProviderVerifierResponse,
    VerifyRequest,
)

log = get_logger(__name__)


class Daemon:
    """Owns one service manager per Pact binary and the daemon's lifetime.

    The remote operations are plain methods; `pactd.daemon.app` exposes them
    over HTTP. Shutdown is driven by `shutdown_token`: OS signals and
    `stop_daemon()` both just set it.
    """

    def __init__(
        self,
        mock_service_manager: ServiceManagerLike | None = None,
        verification_manager: ServiceManagerLike | None = None,
        message_manager: ServiceManagerLike | None = None,
        config: ServiceManagerConfig | None = None,
        shutdown_token: threading.Event | None = None,
    ):
        config = config if config is not None else ServiceManagerConfig()
        self._managers: dict[ManagerKind, ServiceManagerLike] = {
            ManagerKind.MOCK: mock_service_manager or MockServiceManager(config),
            ManagerKind.VERIFICATION: verification_manager or VerificationServiceManager(config),
            ManagerKind.MESSAGE: message_manager or MessageServiceManager(config),
        }
        for manager in self._managers.values():
            manager.setup()

        self.shutdown_token = shutdown_token if shutdown_token is not None else threading.Event()
        self._shutdown_done = False
        self._server: uvicorn.Server | None = None

    @property
    def managers(self) -> Mapping[ManagerKind, ServiceManagerLike]:
        return self._managers

    # ----------------
    # -- Operations --
    # ----------------
    def start_server(self, args: list[str]) -> MockServer:
        log.debug("Starting mock server", args=args)
        process = self._managers[ManagerKind.MOCK].new_service(args)
        process.start()

        assert process.pid is not None
        return MockServer(pid=process.pid, port=process.port or 0, status=STATUS_UNKNOWN, args=args)

    def stop_server(self, server: MockServer) -> MockServer:
        log.debug("Stopping mock server", pid=server.pid)
        try:
            stopped = self._managers[ManagerKind.MOCK].stop(server.pid)
        except PactError:
            log.exception("Mock server stop failed", pid=server.pid)
            stopped = False

        return server.model_copy(update={"status": STATUS_OK if stopped else STATUS_FAILED})

    def list_servers(self) -> PactListResponse:
        log.debug("Listing mock servers")
        servers = [
            MockServer(pid=process.pid or 0, port=process.port or 0, args=process.command[2:])
            for process in self._managers[ManagerKind.MOCK].list().values()
        ]
        return PactListResponse(servers=servers)

    def verify_provider(self, request: VerifyRequest) -> ProviderVerifierResponse:
        log.debug("Verifying provider", provider_base_url=request.provider_base_url)
        return verify_provider(self._managers[ManagerKind.VERIFICATION], request)

    def create_message(self, request: PactMessageRequest) -> CommandResponse:
        """Write one message interaction into a message pact.

        Failures raise; the HTTP layer turns them into a response whose
        `error` field carries the failure text.
        """
        log.debug("Adding message to pact", consumer=request.consumer, provider=request.provider)
        args = request.validate_args()
        output = self._managers[ManagerKind.MESSAGE].new_service(args).run()
        return CommandResponse(message=output.strip())

    def stop_daemon(self) -> None:
        log.info("Daemon stop requested")
        self.shutdown_token.set()

    # --------------
    # -- Lifetime --
    # --------------
    def start_daemon(self, port: int, host: str = "localhost") -> None:
        """Serve the remote operations until a signal or `stop_daemon()` arrives."""
        log.info("Starting daemon", host=host, port=port)

        config = uvicorn.Config(create_app(self), host=host, port=port, log_config=None)
        self._server = uvicorn.Server(config)
        thread = threading.Thread(target=self._server.run, name="pactd-http", daemon=True)
        thread.start()

        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, self._on_signal)
            signal.signal(signal.SIGTERM, self._on_signal)

        # Poll so signal handlers run promptly
        while not self.shutdown_token.wait(timeout=0.5):
            if not thread.is_alive():
                log.error("HTTP server exited unexpectedly")
                break

        self.shutdown()
        self._server.should_exit = True
        thread.join(timeout=10.0)
        flush_logs()

    def _on_signal(self, signum: int, frame: object | None) -> None:
        log.info("Received signal, shutting down all services", signal=signal.Signals(signum).name)
        self.shutdown_token.set()

    def shutdown(self) -> None:
        """Stop every process every manager is still tracking."""
        if self._shutdown_done:
            return
        self._shutdown_done = True

        log.debug("Daemon shutdown")
        for kind, manager in self._managers.items():
            for process in list(manager.list().values()):
                if process.pid is None:
                    continue
                stopped = manager.stop(process.pid)
                log.info("Stopped process on shutdown", manager=kind.value, pid=process.pid, stopped=stopped)
