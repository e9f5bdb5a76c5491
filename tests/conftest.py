import json
import sys
from pathlib import Path
from typing import Callable, Optional

import httpx
import jwt
import pytest

# Make the project root importable when running from a checkout
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config import Config  # noqa: E402


BASE_URL = "https://fhir.example.org/api/FHIR/R4"
AUTHORIZE_URL = "https://fhir.example.org/oauth2/authorize"
TOKEN_URL = "https://fhir.example.org/oauth2/token"
PROFILE_URL = f"{BASE_URL}/Practitioner/abc123"


def make_id_token(claims: dict) -> str:
    return jwt.encode(claims, "test-signing-key-for-hs256-id-tokens", algorithm="HS256")


def capability_statement(authorize: str = AUTHORIZE_URL, token: str = TOKEN_URL) -> dict:
    return {
        "resourceType": "CapabilityStatement",
        "rest": [{
            "mode": "server",
            "security": {
                "extension": [{
                    "url": "http://fhir-registry.smarthealthit.org/StructureDefinition/oauth-uris",
                    "extension": [
                        {"url": "authorize", "valueUri": authorize},
                        {"url": "token", "valueUri": token},
                    ],
                }],
            },
        }],
    }


class FakeClock:
    """Controllable monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EpicStub:
    """httpx transport handler standing in for Epic.

    Routes are keyed by (method, url-without-query). Every request is
    recorded in self.requests.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def add(self, method: str, url: str, response=None, status_code: int = 200,
            content: Optional[bytes] = None, exc: Optional[Exception] = None):
        def handler(request: httpx.Request) -> httpx.Response:
            if exc is not None:
                raise exc
            if content is not None:
                return httpx.Response(status_code, content=content,
                                      headers={"Content-Type": "application/json"})
            return httpx.Response(status_code, json=response)

        self.routes[(method, url)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url).split("?")[0])
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        return handler(request)

    def requests_to(self, method: str, url: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and str(r.url).split("?")[0] == url
        ]


@pytest.fixture
def epic() -> EpicStub:
    stub = EpicStub()
    stub.add("GET", f"{BASE_URL}/metadata", capability_statement())
    return stub


@pytest.fixture
def http_client(epic):
    return httpx.AsyncClient(transport=httpx.MockTransport(epic))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def requests_file(tmp_path) -> Path:
    path = tmp_path / "requests.json"
    path.write_text(json.dumps([
        {"resource": "Patient", "params": {"family": "Lopez"}},
        {"resource": "Observation", "params": {"category": "vital-signs"}},
        {"resource": "Condition"},
    ]))
    return path


@pytest.fixture
def config_data(tmp_path, requests_file) -> dict:
    return {
        "epic_base_url": BASE_URL,
        "client_id": "demo-client",
        "host": "localhost",
        "port": "4005",
        "callback_path": "/callback",
        "initialization_path": "/launch",
        "token_file": str(tmp_path / "token.json"),
        "response_directory": str(tmp_path / "responses"),
        "requests_file": str(requests_file),
    }


@pytest.fixture
def config(config_data) -> Config:
    return Config(config_data)
