"""Client assertions for the JWT-bearer client authentication grant.

The assertion is a short lived RS256 JWT carrying only registered claims:
``jti``, ``sub`` (the client id), ``aud`` and ``exp``.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING, Any

import jwt

from .errors import ParameterError

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_ALGORITHM = "RS256"
ASSERTION_LIFETIME_SECONDS = 60


class ClientAssertionBuilder:
    """Signs client assertions for one client id and audience."""

    def __init__(
        self,
        client_id: str,
        audience: str,
        private_key: RSAPrivateKey,
        *,
        lifetime_seconds: int = ASSERTION_LIFETIME_SECONDS,
    ) -> None:
        """Initialize the builder.

        Args:
            client_id: Subject of the assertion.
            audience: Intended audience of the assertion.
            private_key: RSA key used to sign.
            lifetime_seconds: Seconds until the assertion expires.
        """
        if not client_id:
            raise ParameterError("client_id is required", parameter="client_id")
        if not audience:
            raise ParameterError("audience is required", parameter="audience")
        if private_key is None:
            raise ParameterError("private_key is required", parameter="private_key")
        if lifetime_seconds <= 0:
            raise ParameterError(
                "assertion lifetime must be positive",
                parameter="lifetime_seconds",
            )

        self.client_id = client_id
        self.audience = audience
        self.lifetime_seconds = lifetime_seconds
        self._private_key = private_key

    def claims(self) -> dict[str, Any]:
        """Build a fresh claim set; every call gets a new ``jti``."""
        return {
            "jti": str(uuid.uuid4()),
            "sub": self.client_id,
            "aud": self.audience,
            "exp": int(time.time()) + self.lifetime_seconds,
        }

    def build(self) -> str:
        """Return a signed compact JWT."""
        return jwt.encode(
            self.claims(),
            self._private_key,
            algorithm=ASSERTION_ALGORITHM,
        )

    def form_fields(self) -> dict[str, str]:
        """Token request form fields for the JWT-bearer client assertion."""
        return {
            "grant_type": "client_credentials",
            "client_assertion_type": CLIENT_ASSERTION_TYPE,
            "client_assertion": self.build(),
        }


def build_client_assertion(
    client_id: str,
    audience: str,
    private_key: RSAPrivateKey,
) -> str:
    """Sign a single client assertion with the default lifetime."""
    return ClientAssertionBuilder(client_id, audience, private_key).build()
