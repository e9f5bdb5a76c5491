"""HTTP endpoints of the local callback server.

- Home page (/)
- Authorization initialization (INITIALIZATION_PATH, default /launch)
- Epic OAuth callback (CALLBACK_PATH, default /callback)

The routes read the state store, resolved endpoints and token exchanger
from app.state, which main.create_app() fills in during startup.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from config import Config
from epic_oauth.authorize import build_authorization_url
from epic_oauth.errors import AuthFlowError
from epic_oauth.exchange import CallbackOutcome
from epic_oauth.templates import render_home_page, render_success_page

logger = logging.getLogger(__name__)


async def _finish_flow(request: Request, outcome: Optional[CallbackOutcome] = None) -> None:
    """Runs after the callback response has been sent."""
    state = request.app.state
    try:
        if outcome is not None:
            await state.exchanger.fetch_additional_resources(outcome)
    finally:
        on_flow_complete = getattr(state, "on_flow_complete", None)
        if on_flow_complete:
            logger.info("[CALLBACK] Flow complete, shutting down server")
            on_flow_complete()


def build_router(config: Config) -> APIRouter:
    """Create the router for the configured initialization and callback paths."""
    router = APIRouter(tags=["oauth"])

    async def home():
        """Home page with a button that starts the authorization."""
        return HTMLResponse(render_home_page(config.initialization_path))

    async def initialize(request: Request, launch: Optional[str] = None, iss: Optional[str] = None):
        """Redirect the browser to Epic's authorization endpoint."""
        if launch:
            logger.debug(f"[AUTH] URL: {request.url}")
        auth_url, _ = build_authorization_url(
            config,
            request.app.state.endpoints.authorization_uri,
            request.app.state.state_store,
            launch=launch,
            iss=iss,
        )
        return RedirectResponse(url=auth_url, status_code=302)

    async def callback(request: Request, background_tasks: BackgroundTasks):
        """Epic redirects here with either a code or an error."""
        logger.debug(f"[CALLBACK] URL: {request.url}")

        try:
            outcome = await request.app.state.exchanger.handle_callback(request.query_params)
        except AuthFlowError as e:
            logger.error(f"[CALLBACK] Callback failed: {e.describe()}")
            background_tasks.add_task(_finish_flow, request)
            return PlainTextResponse(e.describe(), status_code=500)

        background_tasks.add_task(_finish_flow, request, outcome)
        return HTMLResponse(render_success_page(
            outcome.token,
            outcome.profile,
            show_token=config.show_token_in_browser,
        ))

    router.add_api_route("/", home, methods=["GET"], response_class=HTMLResponse)
    router.add_api_route(config.initialization_path, initialize, methods=["GET"])
    router.add_api_route(config.callback_path, callback, methods=["GET"])
    return router
