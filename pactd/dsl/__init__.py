"""Test-side API: sessions, interactions and message pacts."""

from pactd.dsl.interaction import Interaction, Request, Response
from pactd.dsl.message import Message
from pactd.dsl.pact import Pact
from pactd.types import VerifyRequest

__all__ = [
    "Interaction",
    "Message",
    "Pact",
    "Request",
    "Response",
    "VerifyRequest",
]
