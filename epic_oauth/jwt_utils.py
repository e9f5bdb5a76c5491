"""JWT utilities for ID tokens returned by Epic.

The ID token is only read for display and to locate the user's FHIR
profile. Its signature is not verified here; the token was received
directly from the token endpoint over TLS.
"""

import logging
from typing import Optional

import jwt

logger = logging.getLogger(__name__)

# Claim holding the FHIR resource URL of the authenticated user
FHIR_USER_CLAIM = "fhirUser"


def decode_id_token(id_token: str) -> dict:
    """Decode an ID token without verifying its signature.

    Args:
        id_token: The encoded JWT string

    Returns:
        The token claims.

    Raises:
        jwt.InvalidTokenError: If the value is not a decodable JWT.
    """
    return jwt.decode(
        id_token,
        options={
            "verify_signature": False,
            "verify_exp": False,
            "verify_aud": False,
            "verify_iss": False,
        },
    )


def get_fhir_user(id_token: str) -> Optional[str]:
    """Return the fhirUser claim of an ID token, or None if absent."""
    claims = decode_id_token(id_token)
    url = claims.get(FHIR_USER_CLAIM)
    if not url:
        logger.debug(f"[JWT] ID token has no {FHIR_USER_CLAIM} claim")
        return None
    return url
