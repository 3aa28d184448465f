from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request

from pactd.types import MockServer, PactListResponse, StartServerRequest

if TYPE_CHECKING:
    from pactd.daemon.daemon import Daemon

router = APIRouter()


# Dependency injection for the daemon
def get_daemon(request: Request) -> Daemon:
    return request.app.state.daemon


@router.post("/start", response_model=MockServer)
def server_start(req_payload: StartServerRequest, request: Request):
    args = list(req_payload.args)
    if req_payload.port and "--port" not in args:
        args.extend(["--port", str(req_payload.port)])
    return get_daemon(request).start_server(args)


@router.post("/stop", response_model=MockServer)
def server_stop(req_payload: MockServer, request: Request):
    # A failed stop is reported through `status`, never as an HTTP error
    return get_daemon(request).stop_server(req_payload)


@router.get("", response_model=PactListResponse)
def server_list(request: Request):
    return get_daemon(request).list_servers()
