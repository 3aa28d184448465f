import os
import socket
import stat
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from pactd.daemon.app import create_app
from pactd.daemon.daemon import Daemon

FIXTURES = Path(__file__).resolve().parent / "fixtures"

# binary name -> (override env var, fixture script)
FAKE_BINARIES: dict[str, tuple[str, str]] = {
    "pact-mock-service": ("PACT_MOCK_SERVICE_BIN", "fake_mock_service.py"),
    "pact-provider-verifier": ("PACT_PROVIDER_VERIFIER_BIN", "fake_verifier.py"),
    "pact-message": ("PACT_MESSAGE_BIN", "fake_message.py"),
}

def write_fake_binary(path: Path, script: Path) -> Path:
    """Write an executable wrapper that runs `script` with the current interpreter."""
    path.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n')
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture()
def free_localhost_port():
    """Function-scoped fixture to get a free port for each test."""
    # Binding to port 0 will ask the OS to give us an arbitrary free port
    # since we've just bound that free port, it is by definition no longer free,
    # so we set that port as reusable to allow another socket to bind to it
    # then we immediately close the socket and release our connection.
    sock = socket.socket()
    sock.bind(("localhost", 0))
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

    port: int = sock.getsockname()[1]
    sock.close()

    return port


@pytest.fixture()
def fake_bin_dir(tmp_path: Path) -> Path:
    """Directory holding the three fake pact binaries under their real names."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    for name, (_, script) in FAKE_BINARIES.items():
        write_fake_binary(bin_dir / name, FIXTURES / script)
    return bin_dir


@pytest.fixture()
def fake_binaries(fake_bin_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every PACT_*_BIN override at the fake binaries."""
    for name, (env_var, _) in FAKE_BINARIES.items():
        monkeypatch.setenv(env_var, str(fake_bin_dir / name))
    return fake_bin_dir


@pytest.fixture()
def daemon(fake_binaries: Path) -> Iterator[Daemon]:
    d = Daemon()
    try:
        yield d
    finally:
        d.shutdown()


@pytest.fixture()
def app_client(daemon: Daemon) -> TestClient:
    return TestClient(create_app(daemon))
