"""
Shared test fixtures for Data Hub SDK tests.

Provides key material, configurations, canned server responses and a
recording mock transport for httpx.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from pydantic import SecretStr

from datahub_sdk.config import (
    BasicAuth,
    ClientConfig,
    ClientCredentialsAuth,
    PublicKeyAuth,
    TelemetryConfig,
)
from datahub_sdk.keys import KeyPair, generate_keypair

SERVER_URL = "https://datahub.example.com"
AUTHORIZER_URL = "https://idp.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def make_http_client(handler: Handler) -> tuple[httpx.Client, RecordingTransport]:
    """Build an httpx client against SERVER_URL backed by ``handler``."""
    transport = RecordingTransport(handler)
    return httpx.Client(base_url=SERVER_URL, transport=transport), transport


def form_data(request: httpx.Request) -> dict[str, str]:
    """Decode a url-encoded request body."""
    return dict(httpx.QueryParams(request.content.decode()))


def entity_batch(
    *entities: dict[str, Any],
    token: str | None = None,
    namespaces: dict[str, str] | None = None,
) -> list[dict[str, Any]]:
    """Build an entity batch as the data hub sends it."""
    batch: list[dict[str, Any]] = [{"id": "@context", "namespaces": namespaces or {}}]
    batch.extend(entities)
    if token is not None:
        batch.append({"id": "@continuation", "token": token})
    return batch


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json"},
    )


@pytest.fixture(scope="session")
def keypair() -> KeyPair:
    """Provide one RSA key pair for the whole session; generation is slow."""
    return generate_keypair(2048)


@pytest.fixture
def base_config() -> ClientConfig:
    """Provide a basic SDK configuration for testing."""
    return ClientConfig(
        server_url=SERVER_URL,
        telemetry=TelemetryConfig(enabled=False),
    )


@pytest.fixture
def basic_auth() -> BasicAuth:
    """Provide admin credentials for the data hub's own token endpoint."""
    return BasicAuth(client_id="admin", client_secret=SecretStr("admin-secret"))


@pytest.fixture
def client_credentials_auth() -> ClientCredentialsAuth:
    """Provide client credentials against an external provider."""
    return ClientCredentialsAuth(
        authorizer_url=AUTHORIZER_URL,
        audience="https://datahub.example.com",
        client_id="test-client-id",
        client_secret=SecretStr("test-client-secret"),
    )


@pytest.fixture
def public_key_auth(keypair: KeyPair) -> PublicKeyAuth:
    """Provide public key authentication with the session key pair."""
    return PublicKeyAuth(client_id="node-client", private_key=keypair.private_key)


@pytest.fixture
def sample_token_response() -> dict:
    """Provide a sample OAuth token response."""
    return {
        "access_token": "eyJhbGciOiJSUzI1NiIsInR5cCI6IkpXVCJ9.test",
        "token_type": "Bearer",
        "expires_in": 3600,
        "scope": "datahub:r datahub:w",
    }


@pytest.fixture
def provider_metadata() -> dict:
    """Provide a sample OpenID provider metadata document."""
    return {
        "issuer": AUTHORIZER_URL,
        "token_endpoint": f"{AUTHORIZER_URL}/oauth/token",
        "jwks_uri": f"{AUTHORIZER_URL}/.well-known/jwks.json",
    }
