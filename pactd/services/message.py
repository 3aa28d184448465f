from collections.abc import Sequence

from pactd.process import ManagedProcess
from pactd.service.locator import BinaryLocator
from pactd.service.protocols import ManagerKind, ServiceManagerConfig
from pactd.service.registry import ProcessRegistry


class MessageServiceManager:
    """Runs `pact-message update ...`, the one-shot writer for message pacts."""

    def __init__(self, config: ServiceManagerConfig | None = None):
        self._config = config if config is not None else ServiceManagerConfig()
        self._locator = BinaryLocator("pact-message", "PACT_MESSAGE_BIN", self._config.bin_dir)
        self._registry = ProcessRegistry(ManagerKind.MESSAGE)

    def setup(self) -> None:
        self._locator.setup()

    def new_service(self, args: Sequence[str]) -> ManagedProcess:
        exe = self._locator.require()
        return ManagedProcess([str(exe), "update", *args], on_start=self._registry.add)

    def list(self) -> dict[int, ManagedProcess]:
        return self._registry.by_port()

    def stop(self, pid: int) -> bool:
        return self._registry.stop(pid, timeout=self._config.stop_grace_seconds)
