import socket

import pytest
import requests
from fastapi.testclient import TestClient

from pactd.dsl.message_bridge import MessageBridge, create_bridge_app
from pactd.errors import LaunchError
from pactd.utils.ports import get_free_port, is_port_free


def _raise():
    raise RuntimeError("handler exploded")


@pytest.fixture()
def bridge_client() -> TestClient:
    handlers = {
        "a test message": lambda: {"name": "billy"},
        "a failing message": _raise,
        "an unserialisable message": lambda: {1, 2, 3},
    }
    return TestClient(create_bridge_app(handlers))


def test_known_description_returns_payload(bridge_client: TestClient):
    r = bridge_client.post("/", json={"description": "a test message"})

    assert r.status_code == 200
    assert r.headers["content-type"] == "application/json; charset=utf-8"
    assert r.json() == {"name": "billy"}


def test_any_path_is_accepted(bridge_client: TestClient):
    r = bridge_client.post("/some/nested/path", json={"description": "a test message"})
    assert r.status_code == 200


def test_unknown_description_is_404(bridge_client: TestClient):
    r = bridge_client.post("/", json={"description": "never registered"})
    assert r.status_code == 404


def test_handler_error_is_503(bridge_client: TestClient):
    r = bridge_client.post("/", json={"description": "a failing message"})
    assert r.status_code == 503


def test_unserialisable_result_is_503(bridge_client: TestClient):
    r = bridge_client.post("/", json={"description": "an unserialisable message"})
    assert r.status_code == 503


def test_malformed_body_is_400(bridge_client: TestClient):
    r = bridge_client.post("/", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400


@pytest.mark.parametrize("body", [b"[1, 2]", b'"just a string"', b'{"description": 5}'])
def test_body_without_description_is_404(bridge_client: TestClient, body: bytes):
    r = bridge_client.post("/", content=body, headers={"Content-Type": "application/json"})
    assert r.status_code == 404


@pytest.mark.timeout(15)
def test_bridge_serves_until_closed():
    port = get_free_port("127.0.0.1")

    with MessageBridge({"a test message": lambda: {"name": "billy"}}, port=port, host="127.0.0.1") as bridge:
        assert bridge.wait_started(timeout=10.0)
        r = requests.post(f"http://127.0.0.1:{port}/", json={"description": "a test message"}, timeout=5)
        assert r.status_code == 200
        assert r.json() == {"name": "billy"}

    assert is_port_free(port, "127.0.0.1")


@pytest.mark.timeout(15)
def test_bridge_refuses_port_in_use():
    with socket.socket() as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen()
        port = busy.getsockname()[1]

        bridge = MessageBridge({}, port=port, host="127.0.0.1")
        with pytest.raises(LaunchError, match="Unable to bind message bridge"):
            bridge.open()

        assert not bridge.wait_started(timeout=0.1)
