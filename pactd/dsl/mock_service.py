"""Client for the admin API of a running Pact mock service."""

from dataclasses import dataclass
from typing import Any

import requests

from pactd.dsl.interaction import Interaction
from pactd.errors import ProtocolError
from pactd.logging_config import get_logger

log = get_logger(__name__)

ADMIN_HEADERS = {"X-Pact-Mock-Service": "true", "Content-Type": "application/json"}


@dataclass
class MockService:
    base_url: str
    consumer: str = ""
    provider: str = ""
    pact_file_write_mode: str = "overwrite"
    request_timeout: float = 30.0

    def add_interaction(self, interaction: Interaction) -> None:
        log.debug("Registering interaction", description=interaction.description)
        self._call("POST", "/interactions", interaction.to_json())

    def verify(self) -> None:
        self._call("GET", "/interactions/verification")

    def delete_interactions(self) -> None:
        self._call("DELETE", "/interactions")

    def write_pact(self) -> None:
        log.debug("Writing pact file", consumer=self.consumer, provider=self.provider, mode=self.pact_file_write_mode)
        self._call(
            "POST",
            "/pact",
            {
                "consumer": {"name": self.consumer},
                "provider": {"name": self.provider},
                "pactfile_write_mode": self.pact_file_write_mode,
            },
        )

    def _call(self, method: str, path: str, payload: dict[str, Any] | None = None) -> None:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                json=payload,
                headers=ADMIN_HEADERS,
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            raise ProtocolError(f"{method} {url} failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise ProtocolError(
                f"Mock service {method} {path} responded {response.status_code}: {response.text}",
            )
