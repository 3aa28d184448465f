"""Run the provider verifier and turn its output into a structured result.

The verifier can fail in three ways:

1. It cannot be started at all (LaunchError).
2. It runs but fails for some unknown reason, leaving undecodable output.
3. It runs and exits non-zero because verification failed.

Case 3 is a normal result: if stdout decodes, it is returned whatever the
exit code was. Otherwise the error carries both streams verbatim.
"""

import json
import threading
from typing import IO

from pydantic import ValidationError as PydanticValidationError

from pactd.errors import LaunchError, ProcessError
from pactd.logging_config import get_logger
from pactd.service.protocols import ServiceManagerLike
from pactd.types import ProviderVerifierResponse, VerifyRequest

log = get_logger(__name__)


def verify_provider(manager: ServiceManagerLike, request: VerifyRequest) -> ProviderVerifierResponse:
    args = request.validate_args()

    process = manager.new_service(args)
    process.start(capture_output=True)
    if process.stdout is None or process.stderr is None:
        raise LaunchError("Verifier output pipes were not attached")

    log.info("Provider verification started", pid=process.pid, provider_base_url=request.provider_base_url)

    # stderr is drained on its own thread so neither pipe can fill up and
    # block the verifier while the other one is being read.
    stderr_chunks: list[bytes] = []
    stderr_thread = threading.Thread(
        target=_drain,
        args=(process.stderr, stderr_chunks),
        daemon=True,
        name=f"verifier-stderr-{process.pid}",
    )
    stderr_thread.start()

    try:
        stdout = process.stdout.read()
    except OSError as e:
        raise LaunchError(f"Unable to read verifier stdout: {e}") from e
    finally:
        process.stdout.close()
        stderr_thread.join()

    stderr = b"".join(stderr_chunks)
    returncode = process.wait()

    stdout_text = stdout.decode("utf-8", errors="replace")
    stderr_text = stderr.decode("utf-8", errors="replace")

    try:
        result = decode_verifier_output(stdout_text)
    except (ValueError, PydanticValidationError) as decode_error:
        cause: object = f"exit status {returncode}" if returncode != 0 else decode_error
        log.error("Provider verification produced no usable result", pid=process.pid, returncode=returncode)
        raise ProcessError(
            f"error verifying provider: {cause}\n\nSTDERR:\n{stderr_text}\n\nSTDOUT:\n{stdout_text}",
            stdout=stdout_text,
            stderr=stderr_text,
        ) from None

    log.info(
        "Provider verification finished",
        pid=process.pid,
        returncode=returncode,
        examples=len(result.examples),
        failures=result.summary.failure_count,
    )
    return result


def decode_verifier_output(stdout: str) -> ProviderVerifierResponse:
    """Decode the first JSON document on stdout; anything after it is ignored."""
    document, _ = json.JSONDecoder().raw_decode(stdout.lstrip())
    return ProviderVerifierResponse.model_validate(document)


def _drain(pipe: IO[bytes], chunks: list[bytes]) -> None:
    try:
        chunks.append(pipe.read())
    except OSError:
        log.exception("Error reading verifier stderr")
    finally:
        pipe.close()
