from __future__ import annotations

import subprocess
import sys
import threading
import time
from collections.abc import Callable, Sequence
from enum import StrEnum
from subprocess import DEVNULL, PIPE, Popen
from typing import IO, Any

import psutil

from pactd.errors import LaunchError, ProcessError
from pactd.logging_config import get_logger

IS_WINDOWS = sys.platform.startswith("win")

log = get_logger(__name__)


class ProcessState(StrEnum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


def _stderr_reader_thread(stderr_pipe: IO[bytes], command: str, pid: int) -> None:
    try:
        for line in iter(stderr_pipe.readline, b""):
            decoded = line.decode("utf-8", errors="replace").rstrip()
            if decoded:
                log.warning("Process stderr output", command=command, pid=pid, stderr_line=decoded)
    except (OSError, ValueError):
        log.exception("Error reading stderr from process", command=command, pid=pid)
    finally:
        stderr_pipe.close()


class ManagedProcess:
    """One external service instance owned by a service manager.

    Creating a ManagedProcess has no side effects. `start()` launches it in the
    background, `run()` runs it to completion, and `stop()` terminates the
    whole process tree.
    """

    # ============================================================================
    # Initialization
    # ============================================================================

    def __init__(
        self,
        command: Sequence[str],
        port: int | None = None,
        on_start: Callable[[ManagedProcess], None] | None = None,
    ):
        if not command:
            raise LaunchError("Cannot create a process without a command")

        self._command: tuple[str, ...] = tuple(command)
        self.port = port
        self._on_start = on_start
        self._popen: Popen[bytes] | None = None
        self._proc: psutil.Process | None = None
        self._state = ProcessState.STARTING

    def __repr__(self) -> str:
        return f"ManagedProcess(pid={self.pid}, port={self.port}, state={self.state}, command={self._command[0]!r})"

    # ============================================================================
    # Properties
    # ============================================================================

    @property
    def command(self) -> list[str]:
        return list(self._command)

    @property
    def pid(self) -> int | None:
        if self._popen is None:
            return None
        return self._popen.pid

    @property
    def state(self) -> ProcessState:
        if self._state == ProcessState.RUNNING and not self.is_running():
            self._state = ProcessState.STOPPED
        return self._state

    @property
    def stdout(self) -> IO[bytes] | None:
        return self._popen.stdout if self._popen is not None else None

    @property
    def stderr(self) -> IO[bytes] | None:
        return self._popen.stderr if self._popen is not None else None

    # ============================================================================
    # Lifecycle Management
    # ============================================================================

    def start(self, capture_output: bool = False) -> ManagedProcess:
        """
        Launch the command in its own session.

        With `capture_output`, stdout and stderr are left as pipes for the
        caller to drain; otherwise stdout is discarded and stderr is logged.
        """
        if self._popen is not None:
            raise LaunchError(f"Process already started with pid {self._popen.pid}")

        popen_kwargs: dict[str, Any] = {
            "stdin": DEVNULL,
            "stdout": PIPE if capture_output else DEVNULL,
            "stderr": PIPE,
        }

        if IS_WINDOWS:
            popen_kwargs["creationflags"] = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        else:
            popen_kwargs["start_new_session"] = True

        try:
            popen = Popen(list(self._command), **popen_kwargs)
        except OSError as e:
            raise LaunchError(f"Unable to launch {self._command[0]}: {e}") from e

        self._popen = popen
        try:
            self._proc = psutil.Process(popen.pid)
        except psutil.NoSuchProcess:
            self._proc = None

        if not capture_output and popen.stderr is not None:
            threading.Thread(
                target=_stderr_reader_thread,
                args=(popen.stderr, self._command[0], popen.pid),
                daemon=True,
                name=f"stderr-reader-{popen.pid}",
            ).start()

        self._state = ProcessState.RUNNING
        log.info("Process started", pid=popen.pid, port=self.port, command=self._command[0])

        if self._on_start is not None:
            self._on_start(self)

        return self

    def run(self) -> str:
        """Run the command to completion and return its stdout."""
        self.start(capture_output=True)
        assert self._popen is not None

        out, err = self._popen.communicate()
        self._state = ProcessState.STOPPED

        stdout = out.decode("utf-8", errors="replace")
        stderr = err.decode("utf-8", errors="replace")
        if self._popen.returncode != 0:
            raise ProcessError(
                f"{self._command[0]} exited with status {self._popen.returncode}\n\nSTDERR:\n{stderr}\n\nSTDOUT:\n{stdout}",
                stdout=stdout,
                stderr=stderr,
            )

        return stdout

    def wait(self) -> int:
        if self._popen is None:
            raise LaunchError("Process was never started")

        returncode = self._popen.wait()
        self._state = ProcessState.STOPPED
        return returncode

    def stop(self, timeout: float = 5.0, poll_interval: float = 0.1) -> bool:
        """Terminate the process and its children, killing whatever outlives `timeout`."""
        if self._popen is None or self._state == ProcessState.STOPPED:
            return False

        children = self._children()
        for child in children:
            _signal(child.terminate)
        if self._proc is not None:
            _signal(self._proc.terminate)

        stopped = self._wait_for_termination(timeout, poll_interval, children)
        self._state = ProcessState.STOPPED
        log.info("Process stopped", pid=self._popen.pid, port=self.port, clean=stopped)
        return stopped

    # ============================================================================
    # Status Checks
    # ============================================================================

    def is_running(self) -> bool:
        if self._popen is None or self._popen.poll() is not None:
            return False

        if self._proc is None:
            return False

        try:
            return self._proc.is_running() and self._proc.status() != psutil.STATUS_ZOMBIE
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return False

    def _children(self) -> list[psutil.Process]:
        if self._proc is None:
            return []
        try:
            return self._proc.children(recursive=True)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return []

    def _wait_for_termination(self, timeout: float, poll_interval: float, children: list[psutil.Process]) -> bool:
        deadline = time.time() + timeout

        while time.time() < deadline:
            if not self.is_running() and not any(_alive(c) for c in children):
                break
            time.sleep(poll_interval)
        else:
            for survivor in [c for c in children if _alive(c)]:
                _signal(survivor.kill)
            if self._proc is not None and self.is_running():
                _signal(self._proc.kill)

        assert self._popen is not None
        try:
            self._popen.wait(timeout=poll_interval * 10)
        except subprocess.TimeoutExpired:
            return False

        return not any(_alive(c) for c in children)


def _alive(proc: psutil.Process) -> bool:
    try:
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def _signal(send: Callable[[], None]) -> None:
    try:
        send()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        # already gone
        pass
