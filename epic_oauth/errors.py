"""Errors raised during the Epic OAuth flow.

Every error carries a fixed ErrorKind and a short human-readable cause.
Callback failures are shown to the browser as "<cause>: <message>".
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    METADATA_RESOLUTION = "metadata_resolution"
    STATE_INVALID = "state_invalid"
    PROVIDER_ERROR = "provider_error"
    MISSING_CODE = "missing_code"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    TOKEN_SAVE_FAILED = "token_save_failed"
    PROFILE_FETCH_FAILED = "profile_fetch_failed"
    RESOURCE_FETCH_FAILED = "resource_fetch_failed"


class AuthFlowError(Exception):
    """Base class for OAuth flow errors."""

    kind: ErrorKind
    cause: str = "Authentication failed"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def describe(self) -> str:
        return f"{self.cause}: {self.message}"


class MetadataResolutionError(AuthFlowError):
    kind = ErrorKind.METADATA_RESOLUTION
    cause = "Metadata unavailable"

    def __init__(self, url: str, reason: str):
        super().__init__(f"Could not resolve OAuth endpoints from {url}: {reason}")
        self.url = url


class StateInvalid(AuthFlowError):
    kind = ErrorKind.STATE_INVALID
    cause = "Invalid State"

    def __init__(self, state: Optional[str]):
        super().__init__(f"Invalid state parameter: unknown, expired or already used state {state!r}")
        self.state = state


class ProviderError(AuthFlowError):
    """The identity provider declined the authorization request."""

    kind = ErrorKind.PROVIDER_ERROR

    def __init__(self, error: str, description: Optional[str] = None):
        super().__init__(description or "The authorization server returned an error")
        self.error = error
        self.description = description

    @property
    def cause(self) -> str:
        return self.error


class MissingCode(AuthFlowError):
    kind = ErrorKind.MISSING_CODE
    cause = "Missing code"

    def __init__(self):
        super().__init__("Missing authorization code")


class TokenExchangeFailed(AuthFlowError):
    kind = ErrorKind.TOKEN_EXCHANGE_FAILED
    cause = "Failed to get token from Epic"

    def __init__(self, status_code: Optional[int], body: str):
        if status_code is None:
            message = f"Token exchange failed: {body}"
        else:
            message = f"Token exchange failed: {status_code} {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TokenSaveFailed(AuthFlowError):
    kind = ErrorKind.TOKEN_SAVE_FAILED
    cause = "Failed to save token"

    def __init__(self, path, reason: str):
        super().__init__(f"Could not write {path}: {reason}")
        self.path = path


class ProfileFetchFailed(AuthFlowError):
    kind = ErrorKind.PROFILE_FETCH_FAILED
    cause = "Profile request failed"

    def __init__(self, url: Optional[str], reason: str):
        super().__init__(f"Profile request to {url or '<unknown>'} failed: {reason}")
        self.url = url


class ResourceFetchFailed(AuthFlowError):
    kind = ErrorKind.RESOURCE_FETCH_FAILED
    cause = "Resource request failed"

    def __init__(self, resource: str, url: str, reason: str):
        super().__init__(f"Error when requesting {url}: {reason}")
        self.resource = resource
        self.url = url
