"""Token cache and refresh gate.

Every authenticated call goes through :meth:`TokenCache.refresh_if_needed`.
The check and the refresh run under one lock, so concurrent callers that
find the token invalid wait for a single in-flight authentication and then
reuse its result instead of each authenticating on their own.
"""

from __future__ import annotations

import threading
from enum import StrEnum
from typing import TYPE_CHECKING

from .config import NoAuth
from .telemetry import get_logger

if TYPE_CHECKING:
    from .auth import Authenticator
    from .config import AuthConfig
    from .models import Token


class AuthState(StrEnum):
    """Authentication lifecycle of a token cache."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


class TokenCache:
    """Owns the current token for one client."""

    def __init__(
        self,
        authenticator: Authenticator,
        auth: AuthConfig,
        *,
        leeway_seconds: int = 10,
    ) -> None:
        """Initialize the cache.

        Args:
            authenticator: Acquires new tokens.
            auth: Strategy used when a token is needed.
            leeway_seconds: A token is treated as expired this many seconds
                before its recorded expiry.
        """
        self._authenticator = authenticator
        self._auth = auth
        self.leeway_seconds = leeway_seconds

        self._token: Token | None = None
        self._authenticating = False
        self._lock = threading.Lock()
        self._logger = get_logger()

    @property
    def auth(self) -> AuthConfig:
        """Active authentication strategy."""
        return self._auth

    @property
    def token(self) -> Token | None:
        """Current token, valid or not."""
        return self._token

    @property
    def state(self) -> AuthState:
        """Current lifecycle state."""
        if self._authenticating:
            return AuthState.AUTHENTICATING
        token = self._token
        if token is None:
            return AuthState.UNAUTHENTICATED
        if self._is_usable(token):
            return AuthState.AUTHENTICATED
        return AuthState.EXPIRED

    def is_valid(self) -> bool:
        """True when the current token can be reused without authenticating."""
        return self._is_usable(self._token)

    def use_auth(self, auth: AuthConfig) -> None:
        """Replace the strategy; the cached token is discarded."""
        with self._lock:
            self._auth = auth
            self._token = None

    def set_token(self, token: Token | None) -> None:
        """Install an existing token, e.g. one restored by the caller."""
        with self._lock:
            self._token = token

    def invalidate(self) -> None:
        """Drop the cached token so the next call authenticates."""
        with self._lock:
            self._token = None

    def refresh_if_needed(self) -> Token | None:
        """Return a usable token, authenticating first when necessary.

        Returns:
            The token to present, or None when the strategy is
            :class:`~datahub_sdk.config.NoAuth` and no token was installed.

        Raises:
            ConfigurationError: If the strategy lacks required fields.
            AuthenticationError: If authentication failed; the cached
                token is cleared.
        """
        token = self._token
        if self._is_usable(token):
            return token

        with self._lock:
            # Another caller may have refreshed while this one waited.
            token = self._token
            if self._is_usable(token):
                return token
            if isinstance(self._auth, NoAuth):
                return token
            return self._refresh_locked()

    def refresh(self) -> Token | None:
        """Authenticate now, regardless of the current token."""
        with self._lock:
            return self._refresh_locked()

    def _refresh_locked(self) -> Token | None:
        self._logger.debug(
            "Refreshing token",
            state=str(self.state),
            strategy=self._auth.strategy,
        )
        self._authenticating = True
        try:
            token = self._authenticator.authenticate(self._auth)
        except Exception:
            self._token = None
            raise
        finally:
            self._authenticating = False

        self._token = token
        return token

    def _is_usable(self, token: Token | None) -> bool:
        return token is not None and token.is_valid(leeway_seconds=self.leeway_seconds)
