from collections.abc import Sequence

from pactd.errors import ValidationError
from pactd.logging_config import get_logger
from pactd.process import ManagedProcess
from pactd.service.locator import BinaryLocator
from pactd.service.protocols import ManagerKind, ServiceManagerConfig
from pactd.service.registry import ProcessRegistry

log = get_logger(__name__)


class MockServiceManager:
    """Runs `pact-mock-service service ...` instances, one per consumer test session."""

    def __init__(self, config: ServiceManagerConfig | None = None):
        self._config = config if config is not None else ServiceManagerConfig()
        self._locator = BinaryLocator("pact-mock-service", "PACT_MOCK_SERVICE_BIN", self._config.bin_dir)
        self._registry = ProcessRegistry(ManagerKind.MOCK)

    def setup(self) -> None:
        self._locator.setup()

    def new_service(self, args: Sequence[str]) -> ManagedProcess:
        exe = self._locator.require()
        port = port_from_args(args)
        log.debug("Building mock service", port=port, args=list(args))
        return ManagedProcess([str(exe), "service", *args], port=port, on_start=self._registry.add)

    def list(self) -> dict[int, ManagedProcess]:
        return self._registry.by_port()

    def stop(self, pid: int) -> bool:
        return self._registry.stop(pid, timeout=self._config.stop_grace_seconds)


def port_from_args(args: Sequence[str]) -> int | None:
    """Read the value of `--port N` or `--port=N` from a mock service argument list."""
    for i, arg in enumerate(args):
        if arg == "--port":
            if i + 1 >= len(args):
                raise ValidationError("--port needs a value")
            value = args[i + 1]
        elif arg.startswith("--port="):
            value = arg.split("=", 1)[1]
        else:
            continue

        try:
            port = int(value)
        except ValueError:
            raise ValidationError(f"Invalid mock service port {value!r}") from None
        if not 0 < port < 65536:
            raise ValidationError(f"Mock service port {port} is out of range")
        return port

    return None
