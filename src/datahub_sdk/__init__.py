"""Data Hub Python SDK."""

from .assertion import ClientAssertionBuilder, build_client_assertion
from .client import DataHubClient
from .config import (
    AuthStrategy,
    BasicAuth,
    ClientConfig,
    ClientCredentialsAuth,
    JWTTokenPolicy,
    NoAuth,
    PublicKeyAuth,
    TelemetryConfig,
    UserAuth,
    auth_config_from_env,
)
from .errors import (
    AuthenticationError,
    ClientProcessingError,
    ConfigurationError,
    DataHubError,
    DiscoveryError,
    ErrorCode,
    NetworkError,
    ParameterError,
    RequestError,
    StrategyNotImplementedError,
    TokenGrantError,
)
from .keys import KeyPair, generate_keypair, load_keypair, save_keypair
from .models import Continuation, Entity, EntityContext, Page, Token
from .query import Query, QueryResultIterator
from .stream import StreamIterator
from .telemetry import configure_telemetry
from .token_cache import AuthState, TokenCache

__all__ = [
    "DataHubClient",
    "ClientConfig",
    "TelemetryConfig",
    "AuthStrategy",
    "JWTTokenPolicy",
    "NoAuth",
    "BasicAuth",
    "ClientCredentialsAuth",
    "PublicKeyAuth",
    "UserAuth",
    "auth_config_from_env",
    "DataHubError",
    "ErrorCode",
    "ParameterError",
    "ConfigurationError",
    "AuthenticationError",
    "StrategyNotImplementedError",
    "DiscoveryError",
    "TokenGrantError",
    "NetworkError",
    "RequestError",
    "ClientProcessingError",
    "KeyPair",
    "generate_keypair",
    "save_keypair",
    "load_keypair",
    "ClientAssertionBuilder",
    "build_client_assertion",
    "Token",
    "Entity",
    "EntityContext",
    "Continuation",
    "Page",
    "StreamIterator",
    "Query",
    "QueryResultIterator",
    "TokenCache",
    "AuthState",
    "configure_telemetry",
]

__version__ = "0.1.0"
