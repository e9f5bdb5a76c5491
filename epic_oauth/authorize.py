"""Build the Epic authorization redirect.

Standalone launches only carry the configured scope. Embedded (EHR) launches
arrive with ``launch`` and ``iss`` query parameters, which are forwarded as
``launch`` and ``aud`` and add the ``launch`` scope.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from epic_oauth.stores import StateStore

logger = logging.getLogger(__name__)


def build_scope(base_scope: str, launch: Optional[str] = None) -> str:
    return f"{base_scope} launch" if launch else base_scope


def build_authorization_url(
    config,
    authorization_uri: str,
    state_store: StateStore,
    launch: Optional[str] = None,
    iss: Optional[str] = None,
) -> tuple[str, str]:
    """Return the authorization URL and the state value it carries."""
    if launch:
        logger.info("[AUTH] Received embedded launch request")

    state = state_store.generate()
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "scope": build_scope(config.scope, launch),
        "redirect_uri": config.redirect_uri,
        "state": state,
    }
    if iss:
        params["aud"] = iss
    if launch:
        params["launch"] = launch
    if config.client_secret:
        params["secret"] = config.client_secret

    separator = "&" if "?" in authorization_uri else "?"
    auth_url = f"{authorization_uri}{separator}{urlencode(params)}"

    logger.info("[AUTH] Redirecting to Epic for authorization...")
    logger.debug(f"[AUTH] Epic authorization URL: {auth_url}")
    return auth_url, state
