"""Error classes for the Data Hub client SDK.

Every error carries a stable error code, a human readable message and an
optional details mapping. The underlying exception, when there is one, is
chained through ``__cause__`` so callers can inspect the root failure.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import AuthStrategy


class ErrorCode(StrEnum):
    """Standardized error codes for the Data Hub SDK."""

    # Caller misuse (1xxx)
    INVALID_PARAMETER = "PARAM_1001"
    INVALID_CONFIG = "PARAM_1002"

    # Authentication (2xxx)
    AUTHENTICATION_FAILED = "AUTH_2001"
    DISCOVERY_FAILED = "AUTH_2002"
    TOKEN_GRANT_FAILED = "AUTH_2003"
    STRATEGY_NOT_IMPLEMENTED = "AUTH_2004"

    # Transport (3xxx)
    NETWORK_ERROR = "NET_3001"
    REQUEST_FAILED = "NET_3002"

    # Response processing (4xxx)
    PROCESSING_FAILED = "PROC_4001"


class DataHubError(Exception):
    """Base error for the Data Hub SDK with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.details = details or {}
        if cause is not None:
            self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        """Root failure wrapped by this error, if any."""
        return self.__cause__

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        data: dict[str, Any] = {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }
        if self.__cause__ is not None:
            data["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return data

    def __str__(self) -> str:
        if self.__cause__ is not None:
            return f"{self.message}: {self.__cause__}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ParameterError(DataHubError):
    """A parameter passed to the SDK is missing or invalid."""

    def __init__(
        self,
        message: str,
        *,
        parameter: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_PARAMETER,
            details={"parameter": parameter} if parameter else None,
            cause=cause,
        )
        self.parameter = parameter


class ConfigurationError(ParameterError):
    """The configured authentication strategy lacks required fields."""

    def __init__(
        self,
        message: str,
        *,
        missing_fields: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = ErrorCode.INVALID_CONFIG.value
        self.missing_fields = list(missing_fields or [])
        if self.missing_fields:
            self.details = {"missing_fields": self.missing_fields}


class AuthenticationError(DataHubError):
    """A token could not be acquired for the configured strategy."""

    def __init__(
        self,
        message: str = "unable to authenticate",
        *,
        strategy: AuthStrategy | str | None = None,
        code: ErrorCode = ErrorCode.AUTHENTICATION_FAILED,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            details={"strategy": str(strategy)} if strategy else None,
            cause=cause,
        )
        self.strategy = strategy


class StrategyNotImplementedError(AuthenticationError):
    """The selected strategy exists in configuration but cannot authenticate."""

    def __init__(self, strategy: AuthStrategy | str) -> None:
        super().__init__(
            f"authentication strategy {strategy} is not implemented",
            strategy=strategy,
            code=ErrorCode.STRATEGY_NOT_IMPLEMENTED,
            cause=NotImplementedError(f"{strategy} authentication is not supported"),
        )


class DiscoveryError(DataHubError):
    """OpenID provider metadata could not be fetched or understood."""

    def __init__(
        self,
        message: str,
        *,
        issuer: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.DISCOVERY_FAILED,
            details={"issuer": issuer} if issuer else None,
            cause=cause,
        )
        self.issuer = issuer


class TokenGrantError(DataHubError):
    """The token endpoint rejected the grant or returned an unusable body."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if error:
            details["error"] = error
        if error_description:
            details["error_description"] = error_description
        super().__init__(
            message,
            ErrorCode.TOKEN_GRANT_FAILED,
            details=details,
            cause=cause,
        )
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


class NetworkError(DataHubError):
    """Network request failed before a response was received."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.NETWORK_ERROR,
            details={"cause": str(cause)} if cause else None,
            cause=cause,
        )


class RequestError(DataHubError):
    """A domain request failed with a non-2xx status or connectivity error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.REQUEST_FAILED,
            details={"status_code": status_code} if status_code else None,
            cause=cause,
        )
        self.status_code = status_code


class ClientProcessingError(DataHubError):
    """A response could not be decoded into the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.PROCESSING_FAILED, cause=cause)
