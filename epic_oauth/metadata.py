"""Resolve Epic's OAuth endpoints from the FHIR capability statement.

Epic publishes its authorize and token URIs as SMART extensions on
rest[0].security in <base>/metadata. They are read once at startup.
"""

import logging
from dataclasses import dataclass

import httpx

from epic_oauth.errors import MetadataResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EndpointURIs:
    authorization_uri: str
    token_uri: str


def extract_endpoints(metadata: dict, url: str = "<metadata>") -> EndpointURIs:
    """Pick the authorize and token URIs out of a capability statement."""
    try:
        extensions = metadata["rest"][0]["security"]["extension"][0]["extension"]
    except (KeyError, IndexError, TypeError):
        raise MetadataResolutionError(url, "missing rest[0].security.extension[0].extension")

    if not isinstance(extensions, list):
        raise MetadataResolutionError(url, "OAuth extension list is malformed")

    by_name = {
        ext.get("url"): ext.get("valueUri")
        for ext in extensions
        if isinstance(ext, dict)
    }
    if by_name.get("authorize") and by_name.get("token"):
        return EndpointURIs(by_name["authorize"], by_name["token"])

    # Fall back to Epic's positional layout: authorize first, then token
    try:
        authorization_uri = extensions[0]["valueUri"]
        token_uri = extensions[1]["valueUri"]
    except (KeyError, IndexError, TypeError):
        raise MetadataResolutionError(url, "authorize/token URIs not found in OAuth extensions")

    if not authorization_uri or not token_uri:
        raise MetadataResolutionError(url, "authorize/token URIs are empty")
    return EndpointURIs(authorization_uri, token_uri)


async def fetch_endpoints(client: httpx.AsyncClient, metadata_url: str) -> EndpointURIs:
    """Fetch <base>/metadata and return the OAuth endpoint URIs.

    Raises:
        MetadataResolutionError: If the document cannot be fetched, is not
            JSON, or lacks the OAuth extensions.
    """
    logger.info("[STARTUP] Fetching Epic metadata...")

    try:
        response = await client.get(metadata_url, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        raise MetadataResolutionError(metadata_url, f"request failed: {e}") from e

    if response.is_error:
        raise MetadataResolutionError(metadata_url, f"HTTP {response.status_code}")

    try:
        metadata = response.json()
    except ValueError as e:
        raise MetadataResolutionError(metadata_url, "response is not valid JSON") from e

    endpoints = extract_endpoints(metadata, metadata_url)
    logger.debug(f"[STARTUP] Authorization URI: {endpoints.authorization_uri}")
    logger.debug(f"[STARTUP] Token URI: {endpoints.token_uri}")
    return endpoints
