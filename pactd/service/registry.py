import threading

from pactd.logging_config import get_logger
from pactd.process import ManagedProcess


class ProcessRegistry:
    """Thread-safe set of running processes, indexed by pid.

    Every manager owns one. Removal happens under the lock, so concurrent
    stops of the same pid see exactly one winner.
    """

    def __init__(self, name: str):
        self._logger = get_logger(__name__).bind(manager=name)
        self._lock = threading.Lock()
        self._processes: dict[int, ManagedProcess] = {}

    def add(self, process: ManagedProcess) -> None:
        pid = process.pid
        if pid is None:
            raise ValueError("Only started processes can be tracked")

        with self._lock:
            self._processes[pid] = process

        self._logger.debug("Tracking process", pid=pid, port=process.port)

    def pop(self, pid: int) -> ManagedProcess | None:
        with self._lock:
            return self._processes.pop(pid, None)

    def running(self) -> list[ManagedProcess]:
        """Snapshot of live processes; anything that has exited is forgotten."""
        with self._lock:
            exited = [pid for pid, proc in self._processes.items() if not proc.is_running()]
            for pid in exited:
                del self._processes[pid]
            alive = list(self._processes.values())

        for pid in exited:
            self._logger.info("Pruned exited process", pid=pid)

        return alive

    def __len__(self) -> int:
        with self._lock:
            return len(self._processes)

    def stop(self, pid: int, timeout: float = 5.0) -> bool:
        process = self.pop(pid)
        if process is None:
            self._logger.warning("Attempted to stop unknown process", pid=pid)
            return False

        if not process.is_running():
            self._logger.warning("Process already exited before stop", pid=pid)
            return False

        return process.stop(timeout=timeout)

    def by_port(self) -> dict[int, ManagedProcess]:
        """Running processes keyed by port; portless ones, and any second claimant of a port, by pid."""
        out: dict[int, ManagedProcess] = {}
        for process in self.running():
            assert process.pid is not None
            key = process.port if process.port is not None else process.pid
            if key in out:
                self._logger.warning("Port claimed by more than one process", port=key, pid=process.pid)
                key = process.pid
            out[key] = process
        return out
