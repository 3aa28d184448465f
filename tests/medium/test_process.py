import sys
from pathlib import Path

import psutil
import pytest

from pactd.errors import LaunchError, ProcessError
from pactd.process import ManagedProcess, ProcessState
from tests.utils.polling import wait_for_event

SLEEPER = [sys.executable, "-c", "import time; time.sleep(60)"]

# Parent that starts a sleeping child and then sleeps itself
PARENT_WITH_CHILD = [
    sys.executable,
    "-c",
    "import subprocess, sys, time; "
    "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)']); "
    "time.sleep(60)",
]


@pytest.mark.timeout(15)
def test_start_and_stop():
    started: list[ManagedProcess] = []
    proc = ManagedProcess(SLEEPER, port=1234, on_start=started.append).start()

    try:
        assert started == [proc]
        assert proc.pid is not None
        assert proc.is_running()
        assert proc.state == ProcessState.RUNNING
    finally:
        assert proc.stop(timeout=5.0)

    assert not proc.is_running()
    assert proc.state == ProcessState.STOPPED
    assert proc.stop() is False


@pytest.mark.timeout(15)
def test_stop_terminates_process_tree():
    proc = ManagedProcess(PARENT_WITH_CHILD).start()
    assert proc.pid is not None

    parent = psutil.Process(proc.pid)
    assert wait_for_event(lambda: len(parent.children(recursive=True)) > 0, interval=0.05, timeout=5.0)
    children = parent.children(recursive=True)

    assert proc.stop(timeout=5.0)

    for child in children:
        assert wait_for_event(
            lambda c=child: not c.is_running() or c.status() == psutil.STATUS_ZOMBIE,
            interval=0.05,
            timeout=5.0,
        )


@pytest.mark.timeout(15)
def test_state_follows_exit():
    proc = ManagedProcess([sys.executable, "-c", "pass"]).start()
    assert wait_for_event(lambda: proc.state == ProcessState.STOPPED, interval=0.05, timeout=5.0)


@pytest.mark.timeout(15)
def test_run_returns_stdout():
    proc = ManagedProcess([sys.executable, "-c", "print('hello')"])
    assert proc.run().strip() == "hello"


@pytest.mark.timeout(15)
def test_run_failure_carries_both_streams():
    script = "import sys; print('to stdout'); print('to stderr', file=sys.stderr); sys.exit(3)"
    proc = ManagedProcess([sys.executable, "-c", script])

    with pytest.raises(ProcessError) as excinfo:
        proc.run()

    err = excinfo.value
    assert "exited with status 3" in str(err)
    assert "STDERR:\nto stderr" in str(err)
    assert "STDOUT:\nto stdout" in str(err)
    assert err.stdout.strip() == "to stdout"
    assert err.stderr.strip() == "to stderr"


def test_launch_failure(tmp_path: Path):
    with pytest.raises(LaunchError, match="Unable to launch"):
        ManagedProcess([str(tmp_path / "does-not-exist")]).start()


def test_empty_command():
    with pytest.raises(LaunchError):
        ManagedProcess([])


@pytest.mark.timeout(15)
def test_start_twice_is_rejected():
    proc = ManagedProcess(SLEEPER).start()
    try:
        with pytest.raises(LaunchError, match="already started"):
            proc.start()
    finally:
        proc.stop()
