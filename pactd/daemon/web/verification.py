from fastapi import APIRouter, Request

from pactd.daemon.web.servers import get_daemon
from pactd.types import ProviderVerifierResponse, VerifyRequest

router = APIRouter()


@router.post("", response_model=ProviderVerifierResponse)
def provider_verify(req_payload: VerifyRequest, request: Request):
    return get_daemon(request).verify_provider(req_payload)
