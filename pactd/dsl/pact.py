from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import pytest

from pactd.client import PactClient
from pactd.dsl.broker import find_consumers
from pactd.dsl.interaction import Interaction
from pactd.dsl.message import Message
from pactd.dsl.message_bridge import MessageBridge, MessageHandler
from pactd.dsl.mock_service import MockService
from pactd.errors import HandlerError, PactError, ProtocolError
from pactd.logging_config import configure_once, get_logger
from pactd.types import CommandResponse, MockServer, PactMessageRequest, ProviderVerifierResponse, VerifyRequest
from pactd.utils.ports import find_port_in_range, get_free_port, wait_for_port

log = get_logger(__name__)


class SubTests(Protocol):
    """The part of pytest-subtests' `subtests` fixture used to report examples."""

    def test(self, msg: str | None = None, **kwargs: Any) -> AbstractContextManager[Any]:
        ...


@dataclass
class Pact:
    """A consumer/provider test session driven through a pact daemon.

    Typical consumer use, once per test module:

    ```python
    pact = Pact(consumer="billy", provider="bobby")

    pact.add_interaction() \
        .given("User billy exists") \
        .upon_receiving("A request to login with user 'billy'") \
        .with_request(method="POST", path="/users/login/1") \
        .will_respond_with(status=200)

    pact.verify(lambda: client.login(pact.mock_server_url))
    pact.write_pact()
    pact.teardown()
    ```

    Not thread-safe; calls are expected in the order setup, add_interaction,
    verify, teardown.
    """

    consumer: str = ""
    provider: str = ""

    # Port the daemon listens on
    port: int = 6666

    # Address of the daemon and the mock services, e.g. "localhost", "127.0.0.1", "::1"
    host: str = ""

    # "tcp", "tcp4" or "tcp6"
    network: str = ""

    # Mock service logs go here; defaults to <cwd>/logs
    log_dir: Path | None = None

    # Pact files are written here; defaults to <cwd>/pacts
    pact_dir: Path | None = None

    # "overwrite" truncates the pact on each write, "update" merges into it
    pact_file_write_mode: str = "overwrite"

    # Pact specification version for the mock service; defaults to 2
    specification_version: int = 0

    log_level: str = ""

    # Ports a mock service may use: "1234", "1234,5667" or "1234-5667"
    allowed_mock_server_ports: str = ""

    # Seconds to wait for a freshly started mock service to accept connections
    mock_server_timeout: float = 10.0

    message_bridge_port: int = 9393
    message_bridge_timeout: float = 10.0

    server: MockServer | None = None
    interactions: list[Interaction] = field(default_factory=list)

    _client: PactClient | None = field(default=None, init=False, repr=False)

    @property
    def mock_server_url(self) -> str:
        if self.server is None:
            raise PactError("No mock server is running for this session")
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.server.port}"

    @property
    def client(self) -> PactClient:
        if self._client is None:
            self.setup(start_mock_server=False)
        assert self._client is not None
        return self._client

    # -------------------
    # -- Consumer side --
    # -------------------
    def setup(self, start_mock_server: bool = True) -> Pact:
        """
        Fill in defaults and, if asked, start a mock service.

        An existing `server` reference is reused rather than relaunched.
        """
        self._apply_defaults()
        configure_once(self.log_level)

        if self._client is None:
            self._client = PactClient(port=self.port, host=self.host, network=self.network)

        if self.server is None and start_mock_server:
            port = self._mock_server_port()
            log.debug("Starting mock service", port=port, consumer=self.consumer, provider=self.provider)

            assert self.pact_dir is not None and self.log_dir is not None
            args = [
                "--pact-specification-version",
                str(self.specification_version),
                "--pact-dir",
                str(self.pact_dir),
                "--log",
                str(self.log_dir / "pact.log"),
                "--consumer",
                self.consumer,
                "--provider",
                self.provider,
            ]
            self.server = self._client.start_server(args, port)

            if not wait_for_port(self.server.port, self.host, self.network, timeout=self.mock_server_timeout):
                raise ProtocolError(f"Timed out waiting for mock service on port {self.server.port}")

        return self

    def add_interaction(self) -> Interaction:
        """Append a new interaction to the session and return it for configuration."""
        self.setup(start_mock_server=True)
        interaction = Interaction()
        self.interactions.append(interaction)
        return interaction

    def verify(self, integration_test: Callable[[], Any]) -> None:
        """
        Register the pending interactions, run `integration_test` against the
        mock service, then check every interaction was exercised.

        Interactions are cleared afterwards so the next test starts clean.
        """
        self.setup(start_mock_server=True)
        log.debug("Verifying interactions", count=len(self.interactions))
        mock_service = self._mock_service()

        for interaction in self.interactions:
            mock_service.add_interaction(interaction)

        integration_test()

        mock_service.verify()

        self.interactions = []

        mock_service.delete_interactions()

    def write_pact(self) -> None:
        """Write the verified interactions to the pact file; call once all tests have run."""
        self.setup(start_mock_server=True)
        log.debug("Writing pact file", pact_dir=str(self.pact_dir))
        self._mock_service().write_pact()

    def teardown(self) -> Pact:
        """Stop the mock service. The returned handle replaces `server`."""
        log.debug("Teardown")
        if self.server is not None:
            self.server = self.client.stop_server(self.server)
        return self

    def verify_message(self, message: Message, handler: Callable[[Message], Any]) -> CommandResponse:
        """Run the consumer's `handler` on `message`; if it succeeds, add the message to the pact."""
        log.debug("Adding message", description=message.description)
        self.setup(start_mock_server=False)

        try:
            handler(message)
        except Exception as e:
            raise HandlerError(f"Message handler for {message.description!r} failed: {e}") from e

        assert self.pact_dir is not None
        return self.client.update_message_pact(
            PactMessageRequest(
                message=message.to_json(),
                consumer=self.consumer,
                provider=self.provider,
                pact_dir=str(self.pact_dir),
                pact_write_mode=self.pact_file_write_mode,
            ),
        )

    # -------------------
    # -- Provider side --
    # -------------------
    def verify_provider_raw(self, request: VerifyRequest) -> ProviderVerifierResponse:
        """Verify a running provider against its pacts and return the verifier's raw result."""
        self.setup(start_mock_server=False)

        if request.broker_url and not request.pact_urls:
            log.debug("Finding all consumers from broker", broker_url=request.broker_url)
            find_consumers(self.provider, request)

        log.debug("Provider verification")
        return self.client.verify_provider(request)

    def verify_provider(self, request: VerifyRequest, subtests: SubTests | None = None) -> ProviderVerifierResponse:
        """
        Like `verify_provider_raw`, reported to pytest.

        Errors fail the current test straight away. Each verifier example is
        reported as its own subtest when `subtests` is given; otherwise all
        failing examples are reported together in one failure.
        """
        try:
            response = self.verify_provider_raw(request)
        except PactError as e:
            pytest.fail(f"Error: {e}")

        _report_examples(response, subtests)
        return response

    def verify_producer(
        self,
        request: VerifyRequest,
        handlers: Mapping[str, MessageHandler],
        subtests: SubTests | None = None,
    ) -> ProviderVerifierResponse:
        """
        Verify message pacts: the verifier calls back into a local bridge,
        which runs the handler registered for each message description.
        """
        self.setup(start_mock_server=False)
        bridge = MessageBridge(handlers, port=self.message_bridge_port, network=self.network)
        try:
            bridge.open()
        except PactError as e:
            pytest.fail(f"Error: {e}")

        try:
            if not bridge.wait_started(timeout=self.message_bridge_timeout):
                pytest.fail(f"Timed out waiting for message bridge on port {self.message_bridge_port}")

            return self.verify_provider(request, subtests)
        finally:
            bridge.close()

    # --------------
    # -- Internal --
    # --------------
    def _apply_defaults(self) -> None:
        cwd = Path(os.getcwd())

        if not self.network:
            self.network = "tcp"
        if not self.host:
            self.host = "localhost"
        if self.log_dir is None:
            self.log_dir = cwd / "logs"
        if self.pact_dir is None:
            self.pact_dir = cwd / "pacts"
        if self.specification_version == 0:
            self.specification_version = 2
        if not self.log_level:
            self.log_level = "INFO"

    def _mock_server_port(self) -> int:
        if self.allowed_mock_server_ports:
            return find_port_in_range(self.allowed_mock_server_ports, self.host, self.network)
        return get_free_port(self.host, self.network)

    def _mock_service(self) -> MockService:
        return MockService(
            base_url=self.mock_server_url,
            consumer=self.consumer,
            provider=self.provider,
            pact_file_write_mode=self.pact_file_write_mode,
        )


def _report_examples(response: ProviderVerifierResponse, subtests: SubTests | None) -> None:
    failures: list[str] = []
    for example in response.examples:
        log.info("Verifier example", description=example.full_description, status=example.status)
        if subtests is not None:
            with subtests.test(msg=example.description):
                if not example.passed:
                    pytest.fail(example.exception.message)
        elif not example.passed:
            failures.append(f"{example.description}: {example.exception.message}")

    if failures:
        pytest.fail("\n".join(failures))
