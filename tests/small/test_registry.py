import threading
from dataclasses import dataclass

import pytest

from pactd.errors import ValidationError
from pactd.service.registry import ProcessRegistry
from pactd.services.mock_service import port_from_args


@dataclass
class FakeProcess:
    pid: int | None
    port: int | None = None
    alive: bool = True
    stop_calls: int = 0

    def is_running(self) -> bool:
        return self.alive

    def stop(self, timeout: float = 5.0) -> bool:
        self.stop_calls += 1
        self.alive = False
        return True


def test_stop_unknown_pid_reports_failure():
    registry = ProcessRegistry("mock")
    assert registry.stop(4242) is False


def test_stop_is_idempotent():
    registry = ProcessRegistry("mock")
    proc = FakeProcess(pid=100, port=1234)
    registry.add(proc)  # type: ignore[arg-type]

    assert registry.stop(100) is True
    assert registry.stop(100) is False
    assert proc.stop_calls == 1
    assert len(registry) == 0


def test_stop_already_exited_process():
    registry = ProcessRegistry("mock")
    registry.add(FakeProcess(pid=100, alive=False))  # type: ignore[arg-type]

    assert registry.stop(100) is False


def test_add_requires_pid():
    registry = ProcessRegistry("mock")
    with pytest.raises(ValueError):
        registry.add(FakeProcess(pid=None))  # type: ignore[arg-type]


def test_running_prunes_exited_processes():
    registry = ProcessRegistry("mock")
    live = FakeProcess(pid=1, port=8001)
    dead = FakeProcess(pid=2, port=8002, alive=False)
    registry.add(live)  # type: ignore[arg-type]
    registry.add(dead)  # type: ignore[arg-type]

    assert registry.running() == [live]
    assert len(registry) == 1


def test_by_port_falls_back_to_pid():
    registry = ProcessRegistry("verification")
    with_port = FakeProcess(pid=1, port=8001)
    without_port = FakeProcess(pid=2)
    registry.add(with_port)  # type: ignore[arg-type]
    registry.add(without_port)  # type: ignore[arg-type]

    assert registry.by_port() == {8001: with_port, 2: without_port}


def test_concurrent_stops_have_one_winner():
    registry = ProcessRegistry("mock")
    proc = FakeProcess(pid=7)
    registry.add(proc)  # type: ignore[arg-type]

    results: list[bool] = []
    lock = threading.Lock()

    def stop():
        outcome = registry.stop(7)
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=stop) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == [False] * 7 + [True]
    assert proc.stop_calls == 1


@pytest.mark.parametrize(
    ("args", "expected"),
    [
        (["--port", "1234", "--consumer", "billy"], 1234),
        (["--consumer", "billy", "--port=4321"], 4321),
        (["--consumer", "billy"], None),
    ],
)
def test_port_from_args(args: list[str], expected: int | None):
    assert port_from_args(args) == expected


@pytest.mark.parametrize("args", [["--port", "abc"], ["--port"], ["--port=0"], ["--port", "70000"]])
def test_port_from_args_rejects_bad_port(args: list[str]):
    with pytest.raises(ValidationError):
        port_from_args(args)


def test_by_port_keeps_processes_sharing_a_port():
    registry = ProcessRegistry("mock")
    first = FakeProcess(pid=1, port=8001)
    second = FakeProcess(pid=2, port=8001)
    registry.add(first)  # type: ignore[arg-type]
    registry.add(second)  # type: ignore[arg-type]

    assert registry.by_port() == {8001: first, 2: second}
