"""Handle Epic's OAuth callback and exchange the code for a token.

Callback handling runs through these stages:

    AWAITING_CALLBACK -> VALIDATING_STATE -> EXCHANGING_CODE
        -> TOKEN_OBTAINED -> [FETCHING_PROFILE] -> [FETCHING_RESOURCES] -> DONE

Any failure before TOKEN_OBTAINED raises an AuthFlowError and ends the flow.
Profile and resource failures are logged and do not.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

import httpx

from config import Config, load_resource_requests
from epic_oauth import fhir
from epic_oauth.errors import MissingCode, ProviderError, StateInvalid, TokenExchangeFailed, TokenSaveFailed
from epic_oauth.metadata import EndpointURIs
from epic_oauth.storage import save_token
from epic_oauth.stores import StateStore

logger = logging.getLogger(__name__)


class FlowStage(str, Enum):
    AWAITING_CALLBACK = "awaiting_callback"
    VALIDATING_STATE = "validating_state"
    STATE_INVALID = "state_invalid"
    EXCHANGING_CODE = "exchanging_code"
    EXCHANGE_FAILED = "exchange_failed"
    TOKEN_OBTAINED = "token_obtained"
    FETCHING_PROFILE = "fetching_profile"
    FETCHING_RESOURCES = "fetching_resources"
    DONE = "done"


@dataclass
class CallbackOutcome:
    token: dict
    raw_token: bytes
    profile: Optional[dict] = None


class TokenExchanger:
    """Validates callbacks and performs the authorization code exchange."""

    def __init__(
        self,
        config: Config,
        endpoints: EndpointURIs,
        state_store: StateStore,
        client: httpx.AsyncClient,
    ):
        self.config = config
        self.endpoints = endpoints
        self.state_store = state_store
        self.client = client
        self.stage = FlowStage.AWAITING_CALLBACK

    def _advance(self, stage: FlowStage) -> None:
        logger.debug(f"[CALLBACK] {self.stage.value} -> {stage.value}")
        self.stage = stage

    async def handle_callback(self, params: Mapping[str, str]) -> CallbackOutcome:
        """Validate the callback parameters and exchange the code for a token.

        Args:
            params: Callback query parameters (state, code, error,
                error_description).

        Returns:
            The token response and, if enabled, the user's profile.

        Raises:
            StateInvalid: The state is unknown, expired or already used.
            ProviderError: Epic reported an error instead of a code.
            MissingCode: No code was returned.
            TokenExchangeFailed: The token endpoint rejected the exchange.
            TokenSaveFailed: The token file could not be written.
        """
        logger.info("[CALLBACK] Received callback from Epic")
        self.stage = FlowStage.AWAITING_CALLBACK

        returned_state = params.get("state")
        code = params.get("code")
        error = params.get("error")
        error_description = params.get("error_description")

        self._advance(FlowStage.VALIDATING_STATE)
        if not self.state_store.validate(returned_state):
            self._advance(FlowStage.STATE_INVALID)
            raise StateInvalid(returned_state)

        if error:
            self._advance(FlowStage.EXCHANGE_FAILED)
            raise ProviderError(error, error_description)

        if not code:
            self._advance(FlowStage.EXCHANGE_FAILED)
            raise MissingCode()

        self._advance(FlowStage.EXCHANGING_CODE)
        raw_token, token = await self.exchange_code(code)

        self._advance(FlowStage.TOKEN_OBTAINED)
        try:
            path = save_token(self.config.token_file, raw_token)
        except OSError as e:
            self._advance(FlowStage.EXCHANGE_FAILED)
            raise TokenSaveFailed(self.config.token_file, str(e)) from e
        logger.info(f"[TOKEN] Access token saved to {path}")

        profile = None
        if self.config.fetch_profile:
            self._advance(FlowStage.FETCHING_PROFILE)
            profile = await fhir.fetch_profile(self.client, token)

        if not self.config.fetch_additional_resources:
            self._advance(FlowStage.DONE)
        return CallbackOutcome(token=token, raw_token=raw_token, profile=profile)

    async def exchange_code(self, code: str) -> tuple[bytes, dict]:
        """POST the authorization code to the token endpoint.

        The code is single use, so a failed exchange is never retried.

        Returns:
            The raw response body and its decoded JSON.
        """
        logger.info("[TOKEN] Exchanging code for token...")
        logger.debug(f"[TOKEN] Received code for token {code}")

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
        }
        if self.config.client_secret:
            data["secret"] = self.config.client_secret

        logger.debug(f"[TOKEN] Exchanging code for token at: {self.endpoints.token_uri}")

        try:
            response = await self.client.post(
                self.endpoints.token_uri,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            self._advance(FlowStage.EXCHANGE_FAILED)
            raise TokenExchangeFailed(None, str(e)) from e

        if response.is_error:
            self._advance(FlowStage.EXCHANGE_FAILED)
            raise TokenExchangeFailed(response.status_code, response.text)

        try:
            token = json.loads(response.content)
        except ValueError as e:
            self._advance(FlowStage.EXCHANGE_FAILED)
            raise TokenExchangeFailed(response.status_code, "token response is not valid JSON") from e

        if not isinstance(token, dict):
            self._advance(FlowStage.EXCHANGE_FAILED)
            raise TokenExchangeFailed(response.status_code, "token response is not a JSON object")

        return response.content, token

    async def fetch_additional_resources(self, outcome: CallbackOutcome) -> list[Path]:
        """Run the configured resource requests with the new access token."""
        if not self.config.fetch_additional_resources:
            return []

        self._advance(FlowStage.FETCHING_RESOURCES)
        try:
            requests = load_resource_requests(self.config.requests_file)
        except (OSError, ValueError) as e:
            logger.error(f"[FHIR] Could not load resource requests from {self.config.requests_file}: {e}")
            self._advance(FlowStage.DONE)
            return []

        logger.info(f"[FHIR] Requesting {len(requests)} additional resource(s)...")
        written = await fhir.fetch_additional_resources(
            self.client,
            self.config.epic_base_url,
            requests,
            outcome.token.get("access_token", ""),
            self.config.response_directory,
        )
        self._advance(FlowStage.DONE)
        return written
