from __future__ import annotations


class PactError(Exception):
    """Base class for every failure the daemon or a session reports.

    `status_code` is the HTTP status the daemon answers with when the error
    escapes a remote operation; `kind` is the name the client uses to raise
    the same class again on its side of the wire.
    """

    status_code = 500

    @property
    def kind(self) -> str:
        return type(self).__name__


class ValidationError(PactError):
    """Malformed request, rejected before any process is spawned."""

    status_code = 400


class NotFoundError(PactError):
    """Reference to an unknown process or message description."""

    status_code = 404


class LaunchError(PactError):
    """A process could not be started or its pipes could not be attached."""


class ProcessError(PactError):
    """A process exited abnormally and left output that could not be decoded."""

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class HandlerError(PactError):
    """A caller-supplied message handler failed."""

    status_code = 503


class ProtocolError(PactError):
    """Transport failure or malformed payload between client and daemon."""

    status_code = 502


ERRORS_BY_KIND: dict[str, type[PactError]] = {
    cls.__name__: cls
    for cls in (PactError, ValidationError, NotFoundError, LaunchError, ProcessError, HandlerError, ProtocolError)
}
