"""Follow-up FHIR requests made with a freshly issued access token.

Failures here never fail the login: they are logged and the caller gets
None back.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

import httpx
import jwt

from config import ResourceRequest
from epic_oauth.errors import ProfileFetchFailed, ResourceFetchFailed
from epic_oauth.jwt_utils import get_fhir_user
from epic_oauth.storage import save_resource_response

logger = logging.getLogger(__name__)


def _bearer_headers(access_token: str) -> dict:
    return {
        "Accept": "application/json",
        "Authorization": f"Bearer {access_token}",
    }


def _epoch_ms() -> int:
    return int(time.time() * 1000)


async def _request_profile(client: httpx.AsyncClient, token: dict) -> dict:
    id_token = token.get("id_token")
    access_token = token.get("access_token")
    if not id_token:
        raise ProfileFetchFailed(None, "token response has no id_token")
    if not access_token:
        raise ProfileFetchFailed(None, "token response has no access_token")

    try:
        url = get_fhir_user(id_token)
    except jwt.InvalidTokenError as e:
        raise ProfileFetchFailed(None, f"could not decode id_token: {e}") from e
    if not url:
        raise ProfileFetchFailed(None, "id_token has no fhirUser claim")

    logger.debug(f"[PROFILE] Profile URL: {url}")

    try:
        response = await client.get(url, headers=_bearer_headers(access_token))
    except httpx.HTTPError as e:
        raise ProfileFetchFailed(url, str(e)) from e

    if response.is_error:
        raise ProfileFetchFailed(url, f"{response.status_code} {response.text}")

    try:
        return response.json()
    except ValueError as e:
        raise ProfileFetchFailed(url, "response is not valid JSON") from e


async def fetch_profile(client: httpx.AsyncClient, token: dict) -> Optional[dict]:
    """Fetch the authenticated user's FHIR profile.

    The profile URL is the fhirUser claim of the ID token.

    Returns:
        The profile resource, or None if it could not be retrieved.
    """
    logger.info("[PROFILE] Requesting authenticated user's profile...")
    try:
        profile = await _request_profile(client, token)
    except ProfileFetchFailed as e:
        logger.error(f"[PROFILE] {e.describe()}")
        return None

    logger.debug(f"[PROFILE] Profile information retrieved: {profile}")
    return profile


async def fetch_resource(
    client: httpx.AsyncClient,
    base_url: str,
    resource: str,
    params: dict,
    access_token: str,
) -> Optional[dict]:
    """GET <base_url>/<resource>?<params>.

    Returns:
        The decoded JSON response, or None if the request failed.
    """
    url = f"{base_url.rstrip('/')}/{resource.lstrip('/')}"
    try:
        try:
            response = await client.get(url, params=params, headers=_bearer_headers(access_token))
        except httpx.HTTPError as e:
            raise ResourceFetchFailed(resource, url, str(e)) from e

        if response.is_error:
            raise ResourceFetchFailed(resource, str(response.url), f"{response.status_code} {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise ResourceFetchFailed(resource, str(response.url), "response is not valid JSON") from e
    except ResourceFetchFailed as e:
        logger.error(f"[FHIR] {e.describe()}")
        return None


async def fetch_additional_resources(
    client: httpx.AsyncClient,
    base_url: str,
    requests: Sequence[ResourceRequest],
    access_token: str,
    directory: Path,
    clock: Callable[[], int] = _epoch_ms,
) -> list[Path]:
    """Fetch each configured resource in order and save the responses.

    Requests run one at a time. A failed request or a response that cannot
    be written is logged and skipped.

    Returns:
        Paths of the files written, in request order.
    """
    written = []
    for request in requests:
        payload = await fetch_resource(client, base_url, request.resource, request.params, access_token)
        if payload is None:
            continue

        logger.debug(f"[FHIR] {request.resource} response: {payload}")
        try:
            path = save_resource_response(directory, request.resource, payload, clock())
        except OSError as e:
            logger.error(f"[FHIR] Could not save response for {request.resource}: {e}")
            continue
        logger.info(f"[FHIR] Wrote response for {request.resource} to {path}")
        written.append(path)

    return written
