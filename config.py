"""Config management for epic-oauth-demo.

Settings come from environment variables (usually loaded from a .env file
by the CLI). Additional FHIR resource requests are read from a JSON file.
"""
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from epic_oauth.stores import DEFAULT_STATE_TTL_SECONDS
from logging_config import LOG_LEVELS


DEFAULT_SCOPE = "openid fhirUser profile"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 4005
DEFAULT_CALLBACK_PATH = "/callback"
DEFAULT_INITIALIZATION_PATH = "/launch"

# Environment variable -> config key
ENV_KEYS = {
    "EPIC_BASE_URL": "epic_base_url",
    "CLIENT_ID": "client_id",
    "CLIENT_SECRET": "client_secret",
    "SCOPE": "scope",
    "HOST": "host",
    "PORT": "port",
    "CALLBACK_PATH": "callback_path",
    "INITIALIZATION_PATH": "initialization_path",
    "FETCH_PROFILE": "fetch_profile",
    "FETCH_ADDITIONAL_RESOURCES": "fetch_additional_resources",
    "REQUESTS_FILE": "requests_file",
    "RESPONSE_DIRECTORY": "response_directory",
    "TOKEN_FILE": "token_file",
    "OPEN_BROWSER": "open_browser",
    "SHOW_TOKEN_IN_BROWSER": "show_token_in_browser",
    "EXIT_AFTER_CALLBACK": "exit_after_callback",
    "STATE_TTL_SECONDS": "state_ttl_seconds",
    "HTTP_TIMEOUT": "http_timeout",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
}

REQUIRED_KEYS = ("epic_base_url", "client_id")


def _as_bool(value, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class ResourceRequest:
    """One FHIR search to run after a successful login."""

    resource: str
    params: dict = field(default_factory=dict)


class Config:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = data or {}

    @property
    def epic_base_url(self) -> Optional[str]:
        url = self.data.get("epic_base_url")
        return url.rstrip("/") if url else None

    @property
    def metadata_url(self) -> str:
        return f"{self.epic_base_url}/metadata"

    @property
    def client_id(self) -> Optional[str]:
        return self.data.get("client_id")

    @property
    def client_secret(self) -> Optional[str]:
        return self.data.get("client_secret") or None

    @property
    def scope(self) -> str:
        return self.data.get("scope") or DEFAULT_SCOPE

    @property
    def host(self) -> str:
        return self.data.get("host") or DEFAULT_HOST

    @property
    def port(self) -> int:
        return int(self.data.get("port") or DEFAULT_PORT)

    @property
    def callback_path(self) -> str:
        return self.data.get("callback_path") or DEFAULT_CALLBACK_PATH

    @property
    def initialization_path(self) -> str:
        return self.data.get("initialization_path") or DEFAULT_INITIALIZATION_PATH

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}{self.callback_path}"

    @property
    def home_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def fetch_profile(self) -> bool:
        return _as_bool(self.data.get("fetch_profile"))

    @property
    def fetch_additional_resources(self) -> bool:
        return _as_bool(self.data.get("fetch_additional_resources"))

    @property
    def requests_file(self) -> Path:
        return Path(self.data.get("requests_file") or "requests.json")

    @property
    def response_directory(self) -> Path:
        return Path(self.data.get("response_directory") or "responses")

    @property
    def token_file(self) -> Path:
        return Path(self.data.get("token_file") or "token.json")

    @property
    def open_browser(self) -> bool:
        return _as_bool(self.data.get("open_browser"))

    @property
    def show_token_in_browser(self) -> bool:
        return _as_bool(self.data.get("show_token_in_browser"))

    @property
    def exit_after_callback(self) -> bool:
        return _as_bool(self.data.get("exit_after_callback"), default=True)

    @property
    def state_ttl_seconds(self) -> float:
        return float(self.data.get("state_ttl_seconds") or DEFAULT_STATE_TTL_SECONDS)

    @property
    def http_timeout(self) -> float:
        return float(self.data.get("http_timeout") or 30)

    @property
    def log_level(self) -> str:
        return (self.data.get("log_level") or "info").lower()

    @property
    def log_format(self) -> str:
        return (self.data.get("log_format") or "plain").lower()

    def missing(self) -> list[str]:
        """Names of required environment variables that are not set."""
        names = {key: env for env, key in ENV_KEYS.items()}
        return [names[key] for key in REQUIRED_KEYS if not self.data.get(key)]

    def invalid(self) -> list[str]:
        """Problems with settings that are set but cannot be used."""
        problems = []
        names = {key: env for env, key in ENV_KEYS.items()}
        for key in ("port", "state_ttl_seconds", "http_timeout"):
            try:
                getattr(self, key)
            except ValueError:
                problems.append(f"{names[key]} must be a number, got {self.data[key]!r}")
        if self.log_level not in LOG_LEVELS:
            problems.append(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")
        return problems

    def is_valid(self) -> bool:
        """Check if config has required fields."""
        return not self.missing() and not self.invalid()

    def with_overrides(self, **overrides) -> "Config":
        """Return a copy with the non-None overrides applied."""
        data = dict(self.data)
        data.update({k: v for k, v in overrides.items() if v is not None})
        return Config(data)


def load_config(environ: Mapping[str, str] = None) -> Config:
    """Load config from environment variables."""
    environ = os.environ if environ is None else environ
    data = {key: environ[env] for env, key in ENV_KEYS.items() if env in environ}
    return Config(data)


def load_resource_requests(path: Path) -> list[ResourceRequest]:
    """Load the ordered list of resource requests from a JSON file.

    The file holds a list of objects like
    ``{"resource": "Observation", "params": {"category": "vital-signs"}}``.
    """
    with open(path, "r") as f:
        entries = json.load(f)

    if not isinstance(entries, list):
        raise ValueError(f"{path} must contain a JSON list of resource requests")

    requests = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("resource"):
            raise ValueError(f"Invalid resource request in {path}: {entry!r}")
        requests.append(ResourceRequest(
            resource=entry["resource"],
            params=dict(entry.get("params") or {}),
        ))
    return requests
