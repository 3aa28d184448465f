"""Resolve which consumer pacts a provider must satisfy, using a Pact Broker."""

import requests

from pactd.errors import NotFoundError, ProtocolError, ValidationError
from pactd.logging_config import get_logger
from pactd.types import VerifyRequest

log = get_logger(__name__)

HAL_HEADERS = {"Accept": "application/hal+json"}


def find_consumers(provider: str, request: VerifyRequest, timeout: float = 30.0) -> list[str]:
    """
    Fill `request.pact_urls` with the latest pacts for `provider`, one lookup
    per tag (or a single untagged lookup when there are no tags).
    """
    if not provider:
        raise ValidationError("Provider name is mandatory when verifying against a broker")

    broker = request.broker_url.rstrip("/")
    suffixes = [f"/latest/{tag}" for tag in request.tags] or ["/latest"]
    auth = (request.broker_username, request.broker_password) if request.broker_username else None

    pact_urls: list[str] = []
    for suffix in suffixes:
        url = f"{broker}/pacts/provider/{provider}{suffix}"
        log.debug("Finding consumers from broker", url=url)
        try:
            response = requests.get(url, headers=HAL_HEADERS, auth=auth, timeout=timeout)
        except requests.RequestException as e:
            raise ProtocolError(f"Broker lookup {url} failed: {e}") from e

        if response.status_code == 404:
            continue
        if response.status_code != 200:
            raise ProtocolError(f"Broker lookup {url} responded {response.status_code}: {response.text}")

        try:
            links = response.json().get("_links", {})
        except (ValueError, AttributeError) as e:
            raise ProtocolError(f"Broker returned malformed HAL document from {url}") from e

        for link in links.get("pb:pacts", links.get("pacts", [])):
            href = link.get("href")
            if href and href not in pact_urls:
                pact_urls.append(href)

    if not pact_urls:
        raise NotFoundError(f"No pacts found for provider {provider!r} at {broker}")

    log.info("Found consumer pacts", provider=provider, count=len(pact_urls))
    request.pact_urls = pact_urls
    return pact_urls
