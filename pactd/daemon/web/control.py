from fastapi import APIRouter, Request

from pactd.daemon.web.servers import get_daemon

router = APIRouter()


@router.post("/stop")
def daemon_stop(request: Request):
    get_daemon(request).stop_daemon()
    return {"message": "Daemon shutdown requested"}
