from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pactd.daemon.web.servers import get_daemon
from pactd.errors import PactError
from pactd.logging_config import get_logger
from pactd.types import CommandResponse, PactMessageRequest

router = APIRouter()
log = get_logger(__name__)


@router.post("", response_model=CommandResponse)
def message_create(req_payload: PactMessageRequest, request: Request):
    try:
        return get_daemon(request).create_message(req_payload)
    except PactError as e:
        log.warning("Message pact update failed", consumer=req_payload.consumer, error=e.kind)
        body = CommandResponse(error=str(e)).model_dump()
        return JSONResponse(status_code=e.status_code, content={**body, "kind": e.kind, "detail": str(e)})
