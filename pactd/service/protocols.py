from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from pactd.process import ManagedProcess


class ManagerKind(StrEnum):
    """Variant names of the daemon's manager registry."""
    MOCK = "mock"
    VERIFICATION = "verification"
    MESSAGE = "message"


@dataclass
class ServiceManagerConfig:
    bin_dir: Path | None = None
    stop_grace_seconds: float = 5.0


class ServiceManagerLike(Protocol):
    """Lifecycle API for one kind of external Pact binary."""

    def setup(self) -> None:
        """Prepare the manager once; never raises, failures surface in `new_service`."""
        ...

    def new_service(self, args: Sequence[str]) -> ManagedProcess:
        """Build an unstarted process for the given argument list."""
        ...

    def list(self) -> dict[int, ManagedProcess]:
        """Running processes this manager started, keyed by port (pid when portless)."""
        ...

    def stop(self, pid: int) -> bool:
        """Terminate a tracked process; False for unknown or already stopped pids."""
        ...
