"""Epic OAuth demo server - runs on the local computer.

This server:
- Resolves Epic's authorize/token URIs from <EPIC_BASE_URL>/metadata at startup
- Redirects the browser to Epic to log in (standalone or embedded launch)
- Receives Epic's callback, exchanges the code for a token and saves it
- Optionally fetches the user's FHIR profile and extra FHIR resources
"""
import logging
import time
from contextlib import asynccontextmanager
from functools import partial
from typing import Callable, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from browser import open_browser
from config import Config
from epic_oauth.endpoints import build_router
from epic_oauth.exchange import TokenExchanger
from epic_oauth.metadata import fetch_endpoints
from epic_oauth.stores import StateStore

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(
    config: Config,
    http_client: Optional[httpx.AsyncClient] = None,
    state_store: Optional[StateStore] = None,
    clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    """Create the callback server application.

    Args:
        config: Loaded configuration.
        http_client: Client for calls to Epic. One is created (and closed on
            shutdown) when not given.
        state_store: Store for OAuth state values. Defaults to a new store
            using the configured TTL.
        clock: Clock for a default state store. Defaults to time.monotonic.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = http_client
        if client is None:
            client = httpx.AsyncClient(timeout=config.http_timeout)
        try:
            # Startup fails if the endpoints cannot be resolved
            endpoints = await fetch_endpoints(client, config.metadata_url)
            app.state.endpoints = endpoints
            app.state.exchanger = TokenExchanger(config, endpoints, app.state.state_store, client)
            logger.info(f"[STARTUP] Listening for Epic callback at {config.redirect_uri}")
            yield
        finally:
            if http_client is None:
                await client.aclose()

    app = FastAPI(
        title="Epic OAuth Demo",
        description="OAuth 2.0 authorization code flow against Epic's FHIR server",
        version=VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    if state_store is None:
        state_store = StateStore(ttl_seconds=config.state_ttl_seconds, clock=clock or time.monotonic)
    app.state.state_store = state_store
    app.state.on_flow_complete = None

    @app.exception_handler(StarletteHTTPException)
    async def log_unexpected_path(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            logger.warning(f"[SERVER] Unexpected path: {request.url.path}")
        return await http_exception_handler(request, exc)

    app.include_router(build_router(config))
    return app


class CallbackServer(uvicorn.Server):
    """uvicorn server that can run a hook once it is accepting connections."""

    def __init__(self, config: uvicorn.Config, on_started: Optional[Callable[[], None]] = None):
        super().__init__(config)
        self.on_started = on_started

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.started and self.on_started:
            self.on_started()

    def request_exit(self) -> None:
        self.should_exit = True


def run(config: Config) -> bool:
    """Serve the OAuth flow until interrupted (or until one callback is handled).

    Returns False if the server failed to start, e.g. because Epic's
    metadata could not be resolved.
    """
    app = create_app(config)

    on_started = None
    if config.open_browser:
        on_started = partial(open_browser, config.home_url)

    server = CallbackServer(
        uvicorn.Config(
            app,
            host=config.host,
            port=config.port,
            log_config=None,
            log_level=config.log_level,
        ),
        on_started=on_started,
    )
    if config.exit_after_callback:
        app.state.on_flow_complete = server.request_exit

    logger.info(f"[STARTUP] Starting Epic OAuth demo v{VERSION} on {config.home_url}")
    server.run()
    return server.started
