"""Configuration for the Data Hub client SDK.

Uses Pydantic v2 frozen models. Authentication is configured with exactly
one strategy model; the models form a tagged union discriminated on
``strategy``. Required fields are checked when a token is requested, not
when the model is built, so an incomplete strategy only fails once the
client actually needs to authenticate.
"""

from __future__ import annotations

import os
from enum import StrEnum
from typing import Annotated, Any, Literal, Self, Union

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    field_validator,
)

DEFAULT_JWT_AUDIENCE = "datahub-client-sdk"


class AuthStrategy(StrEnum):
    """Supported authentication strategies."""

    NONE = "none"
    BASIC = "basic"
    CLIENT_CREDENTIALS = "client_credentials"
    PUBLIC_KEY_JWT = "public_key_jwt"
    USER_FLOW = "user_flow"


class JWTTokenPolicy(StrEnum):
    """How long a token obtained with a signed JWT assertion is trusted.

    The token endpoint answers the JWT-bearer grant with an access token
    and no expiry, so the lifetime has to be chosen by the caller.
    """

    # Reuse the token until invalidate() is called or a new auth is set.
    CACHE_UNTIL_INVALIDATED = "cache_until_invalidated"
    # Fetch a fresh token for every authenticated call.
    ALWAYS_REAUTHENTICATE = "always_reauthenticate"
    # Read ``exp`` from the access token when it is itself a JWT.
    USE_TOKEN_CLAIMS = "use_token_claims"


class _AuthMethod(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def missing_fields(self) -> list[str]:
        """Names of the fields this strategy needs but does not have."""
        return []


class NoAuth(_AuthMethod):
    """Talk to an unsecured data hub; no token is ever requested."""

    strategy: Literal["none"] = "none"


class BasicAuth(_AuthMethod):
    """Admin user credentials posted to the data hub's own token endpoint.

    When ``authorizer_url`` is empty the data hub server URL is used.
    """

    strategy: Literal["basic"] = "basic"
    client_id: str = ""
    client_secret: SecretStr | None = None
    authorizer_url: str = ""

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.client_id:
            missing.append("client_id")
        if self.client_secret is None or not self.client_secret.get_secret_value():
            missing.append("client_secret")
        return missing


class ClientCredentialsAuth(_AuthMethod):
    """OAuth2 client credentials against an external OpenID provider."""

    strategy: Literal["client_credentials"] = "client_credentials"
    authorizer_url: str = ""
    audience: str = ""
    client_id: str = ""
    client_secret: SecretStr | None = None

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.client_id:
            missing.append("client_id")
        if self.client_secret is None or not self.client_secret.get_secret_value():
            missing.append("client_secret")
        if not self.authorizer_url:
            missing.append("authorizer_url")
        if not self.audience:
            missing.append("audience")
        return missing


class PublicKeyAuth(_AuthMethod):
    """Client assertion signed with the client's RSA private key.

    When ``authorizer_url`` is empty the data hub server URL is used.
    """

    strategy: Literal["public_key_jwt"] = "public_key_jwt"
    client_id: str = ""
    private_key: RSAPrivateKey | None = None
    audience: str = DEFAULT_JWT_AUDIENCE
    authorizer_url: str = ""

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.client_id:
            missing.append("client_id")
        if self.private_key is None:
            missing.append("private_key")
        if not self.audience:
            missing.append("audience")
        return missing


class UserAuth(_AuthMethod):
    """Interactive user login. Accepted as configuration, not implemented."""

    strategy: Literal["user_flow"] = "user_flow"
    authorizer_url: str = ""
    audience: str = ""


AuthConfig = Annotated[
    Union[NoAuth, BasicAuth, ClientCredentialsAuth, PublicKeyAuth, UserAuth],
    Field(discriminator="strategy"),
]


class TelemetryConfig(BaseModel):
    """Logging and tracing configuration.

    Applied through :func:`~datahub_sdk.telemetry.configure_telemetry`. A
    client applies it on construction only when the telemetry section was
    given explicitly; otherwise global logging is left alone.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "datahub-sdk"
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unsupported log level: {v}"
            raise ValueError(msg)
        return level


class ClientConfig(BaseModel):
    """Main configuration for a Data Hub client."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    server_url: HttpUrl
    auth: AuthConfig = Field(default_factory=NoAuth)

    timeout: Annotated[float, Field(gt=0, le=300)] = 30.0
    user_agent: str = "datahub-sdk-python/0.1.0"

    # Seconds before the recorded expiry at which a token stops being valid.
    token_leeway: Annotated[int, Field(ge=0, le=300)] = 10
    jwt_token_policy: JWTTokenPolicy = JWTTokenPolicy.CACHE_UNTIL_INVALIDATED

    # Applied by DataHubClient only when set explicitly.
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @property
    def server_url_str(self) -> str:
        """Get server URL as string without trailing slash."""
        return str(self.server_url).rstrip("/")

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values.

        Only fields set on this config are carried over, so defaults stay
        defaults in the copy.
        """
        data = {name: getattr(self, name) for name in self.model_fields_set}
        data.update(kwargs)
        return self.__class__.model_validate(data)

    @classmethod
    def from_env(cls, prefix: str = "DATAHUB_") -> Self:
        """Create config from environment variables."""
        server_url = os.environ.get(f"{prefix}SERVER_URL")
        if not server_url:
            msg = f"{prefix}SERVER_URL environment variable is required"
            raise ValueError(msg)

        return cls(
            server_url=server_url,
            auth=auth_config_from_env(prefix),
            timeout=float(os.environ.get(f"{prefix}TIMEOUT", "30.0")),
            user_agent=os.environ.get(f"{prefix}USER_AGENT", "datahub-sdk-python/0.1.0"),
        )


def auth_config_from_env(prefix: str = "DATAHUB_") -> AuthConfig:
    """Build the authentication strategy from environment variables.

    ``{prefix}AUTH_TYPE`` selects the strategy; the remaining variables are
    read as the strategy needs them. For ``public_key_jwt`` the private key
    is loaded from the key pair stored in ``{prefix}KEY_DIR``.
    """

    def get_env(key: str, default: str = "") -> str:
        return os.environ.get(f"{prefix}{key}", default)

    try:
        strategy = AuthStrategy(get_env("AUTH_TYPE", AuthStrategy.NONE).lower())
    except ValueError as e:
        msg = f"{prefix}AUTH_TYPE must be one of {[s.value for s in AuthStrategy]}"
        raise ValueError(msg) from e

    secret = get_env("CLIENT_SECRET")
    client_secret = SecretStr(secret) if secret else None

    if strategy == AuthStrategy.BASIC:
        return BasicAuth(
            client_id=get_env("CLIENT_ID"),
            client_secret=client_secret,
            authorizer_url=get_env("AUTHORIZER_URL"),
        )
    if strategy == AuthStrategy.CLIENT_CREDENTIALS:
        return ClientCredentialsAuth(
            authorizer_url=get_env("AUTHORIZER_URL"),
            audience=get_env("AUDIENCE"),
            client_id=get_env("CLIENT_ID"),
            client_secret=client_secret,
        )
    if strategy == AuthStrategy.PUBLIC_KEY_JWT:
        from .keys import load_keypair

        key_dir = get_env("KEY_DIR")
        private_key = load_keypair(key_dir).private_key if key_dir else None
        return PublicKeyAuth(
            client_id=get_env("CLIENT_ID"),
            private_key=private_key,
            audience=get_env("AUDIENCE", DEFAULT_JWT_AUDIENCE),
            authorizer_url=get_env("AUTHORIZER_URL"),
        )
    if strategy == AuthStrategy.USER_FLOW:
        return UserAuth(
            authorizer_url=get_env("AUTHORIZER_URL"),
            audience=get_env("AUDIENCE"),
        )
    return NoAuth()
