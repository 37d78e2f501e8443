"""Token acquisition for each authentication strategy.

The :class:`Authenticator` is stateless: it turns a strategy configuration
into a :class:`~datahub_sdk.models.Token` with one round trip to the
relevant token endpoint. Caching and refresh decisions belong to
:class:`~datahub_sdk.token_cache.TokenCache`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, assert_never

import httpx
import jwt
from pydantic import ValidationError as PydanticValidationError

from .assertion import ClientAssertionBuilder
from .config import (
    AuthStrategy,
    BasicAuth,
    ClientCredentialsAuth,
    JWTTokenPolicy,
    NoAuth,
    PublicKeyAuth,
    UserAuth,
)
from .discovery import discover_provider
from .errors import (
    AuthenticationError,
    ConfigurationError,
    DiscoveryError,
    NetworkError,
    ParameterError,
    StrategyNotImplementedError,
    TokenGrantError,
)
from .models import Token, TokenResponse
from .telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from .config import AuthConfig

TOKEN_PATH = "/security/token"

_FAILURE_MESSAGES = {
    AuthStrategy.BASIC: "unable to authenticate using basic authentication",
    AuthStrategy.CLIENT_CREDENTIALS: "unable to authenticate using client credentials",
    AuthStrategy.PUBLIC_KEY_JWT: "unable to authenticate using client certificate",
    AuthStrategy.USER_FLOW: "unable to authenticate with user flow",
}


class Authenticator:
    """Acquires bearer tokens for the configured strategy."""

    def __init__(
        self,
        http_client: httpx.Client,
        *,
        server_url: str,
        jwt_token_policy: JWTTokenPolicy = JWTTokenPolicy.CACHE_UNTIL_INVALIDATED,
    ) -> None:
        """Initialize the authenticator.

        Args:
            http_client: HTTP client used for discovery and token requests.
            server_url: Data hub URL; the default authorizer for the basic
                and public key strategies.
            jwt_token_policy: Lifetime given to tokens from the public key
                strategy, whose responses carry no expiry.
        """
        self._http = http_client
        self.server_url = server_url.rstrip("/")
        self.jwt_token_policy = jwt_token_policy
        self._logger = get_logger()

    def authenticate(self, auth: AuthConfig) -> Token | None:
        """Acquire a new token for ``auth``.

        Returns:
            The new token, or None for :class:`NoAuth`.

        Raises:
            ConfigurationError: If the strategy lacks required fields.
            AuthenticationError: If the token could not be acquired. The
                root failure is available as ``__cause__``.
        """
        strategy = AuthStrategy(auth.strategy)
        if isinstance(auth, NoAuth):
            return None

        missing = auth.missing_fields()
        if missing:
            raise ConfigurationError(
                f"{strategy} authentication is missing {', '.join(missing)}",
                missing_fields=missing,
            )

        self._logger.debug("Authenticating", strategy=strategy)
        with trace_operation("authenticate", attributes={"auth.strategy": str(strategy)}):
            try:
                if isinstance(auth, BasicAuth):
                    token = self._authenticate_basic(auth)
                elif isinstance(auth, ClientCredentialsAuth):
                    token = self._authenticate_client_credentials(auth)
                elif isinstance(auth, PublicKeyAuth):
                    token = self._authenticate_public_key(auth)
                elif isinstance(auth, UserAuth):
                    raise StrategyNotImplementedError(strategy)
                else:
                    assert_never(auth)
            except AuthenticationError:
                raise
            except (DiscoveryError, TokenGrantError, NetworkError, ParameterError) as e:
                self._logger.warning(
                    "Authentication failed",
                    strategy=strategy,
                    error=e.to_dict(),
                )
                raise AuthenticationError(
                    _FAILURE_MESSAGES[strategy],
                    strategy=strategy,
                    cause=e,
                ) from e

        self._logger.info(
            "Authenticated",
            strategy=strategy,
            expires_at=token.expiry.isoformat() if token.expiry else None,
        )
        return token

    def _authenticate_basic(self, auth: BasicAuth) -> Token:
        url = _join(auth.authorizer_url or self.server_url, TOKEN_PATH)
        body = self._request_token(
            url,
            {
                "grant_type": "client_credentials",
                "client_id": auth.client_id,
                "client_secret": auth.client_secret.get_secret_value(),
            },
        )
        return _token_from_body(body)

    def _authenticate_client_credentials(self, auth: ClientCredentialsAuth) -> Token:
        provider = discover_provider(self._http, auth.authorizer_url)
        body = self._request_token(
            provider.token_endpoint,
            {
                "grant_type": "client_credentials",
                "client_id": auth.client_id,
                "client_secret": auth.client_secret.get_secret_value(),
                "audience": auth.audience,
            },
        )
        return _token_from_body(body)

    def _authenticate_public_key(self, auth: PublicKeyAuth) -> Token:
        builder = ClientAssertionBuilder(auth.client_id, auth.audience, auth.private_key)
        try:
            form = builder.form_fields()
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise ParameterError("unable to sign client assertion", cause=e) from e

        url = _join(auth.authorizer_url or self.server_url, TOKEN_PATH)
        body = self._request_token(url, form)

        access_token = body.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenGrantError("token response has no access_token")
        return self._jwt_bearer_token(access_token)

    def _jwt_bearer_token(self, access_token: str) -> Token:
        if self.jwt_token_policy == JWTTokenPolicy.ALWAYS_REAUTHENTICATE:
            return Token(access_token=access_token, cacheable=False)
        if self.jwt_token_policy == JWTTokenPolicy.USE_TOKEN_CLAIMS:
            return Token(access_token=access_token, expiry=_unverified_expiry(access_token))
        return Token(access_token=access_token)

    def _request_token(self, url: str, data: dict[str, str]) -> dict[str, Any]:
        """POST a token request form and return the decoded JSON body.

        Raises:
            NetworkError: If no response was received.
            TokenGrantError: If the server refused the grant or the body
                is not a JSON object.
        """
        with trace_operation("token_request", attributes={"http.url": url}):
            try:
                response = self._http.post(
                    url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise NetworkError(f"token request to {url} failed", cause=e) from e

        if not response.is_success:
            raise _grant_error(response)

        try:
            body = response.json()
        except ValueError as e:
            raise TokenGrantError(
                "token response is not valid JSON",
                status_code=response.status_code,
                cause=e,
            ) from e
        if not isinstance(body, dict):
            raise TokenGrantError(
                "token response is not a JSON object",
                status_code=response.status_code,
            )
        return body


def _join(base: str, path: str) -> str:
    return base.rstrip("/") + path


def _token_from_body(body: dict[str, Any]) -> Token:
    try:
        response = TokenResponse.model_validate(body)
    except PydanticValidationError as e:
        raise TokenGrantError("token response is invalid", cause=e) from e
    return Token.from_response(response)


def _grant_error(response: httpx.Response) -> TokenGrantError:
    error: str | None = None
    description: str | None = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        description = body.get("error_description")

    return TokenGrantError(
        description or f"token request failed with http status {response.status_code}",
        status_code=response.status_code,
        error=error,
        error_description=description,
    )


def _unverified_expiry(access_token: str) -> datetime | None:
    """Read ``exp`` from a JWT access token without verifying it."""
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    try:
        return datetime.fromtimestamp(exp, tz=UTC)
    except (OverflowError, OSError, ValueError):
        # Out of range for the platform clock; treat like an opaque token.
        return None
