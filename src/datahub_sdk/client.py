"""Data Hub SDK client.

Owns the HTTP transport and the token cache. Every dataset call passes the
token gate first, so an authentication failure aborts the call before any
request reaches the data hub.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from .auth import Authenticator
from .config import ClientConfig, NoAuth
from .errors import ParameterError
from .http import create_http_client, request_json, send_streaming
from .models import Entity, Page, Token, parse_entity_page
from .query import Query, QueryResultIterator, parse_query_result
from .stream import StreamIterator
from .telemetry import configure_telemetry, get_logger
from .token_cache import AuthState, TokenCache

if TYPE_CHECKING:
    from .config import AuthConfig

# Request body is JSON; this type tells the server to run it as JavaScript.
JAVASCRIPT_QUERY_CONTENT_TYPE = "application/x-javascript-query"


class DataHubClient:
    """Synchronous Data Hub client."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize client.

        Args:
            config: SDK configuration.
            http_client: Optional preconfigured HTTP client. The client does
                not close a transport it did not create.

        An explicitly set ``config.telemetry`` is applied globally with
        :func:`~datahub_sdk.telemetry.configure_telemetry`.
        """
        if "telemetry" in config.model_fields_set:
            configure_telemetry(config.telemetry)
        self.config = config
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else create_http_client(config)
        self._authenticator = Authenticator(
            self._http,
            server_url=config.server_url_str,
            jwt_token_policy=config.jwt_token_policy,
        )
        self._tokens = TokenCache(
            self._authenticator,
            config.auth,
            leeway_seconds=config.token_leeway,
        )
        self._logger = get_logger()

    @classmethod
    def for_server(
        cls,
        server_url: str,
        auth: AuthConfig | None = None,
        **options: Any,
    ) -> Self:
        """Create a client from a server URL.

        Raises:
            ParameterError: If the server URL is empty, or it or any option
                is invalid. ``parameter`` names the first offending field.
        """
        if not server_url:
            raise ParameterError("server url is required", parameter="server_url")
        try:
            config = ClientConfig(server_url=server_url, auth=auth or NoAuth(), **options)
        except PydanticValidationError as e:
            errors = e.errors()
            field = str(errors[0]["loc"][0]) if errors and errors[0]["loc"] else "config"
            raise ParameterError(f"{field} is not valid", parameter=field, cause=e) from e
        return cls(config)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_http:
            self._http.close()

    # Authentication

    @property
    def token_cache(self) -> TokenCache:
        """Token cache shared by every call on this client."""
        return self._tokens

    @property
    def auth_state(self) -> AuthState:
        """Current authentication state."""
        return self._tokens.state

    def use_auth(self, auth: AuthConfig) -> None:
        """Switch authentication strategy; the cached token is discarded."""
        self.config = self.config.with_overrides(auth=auth)
        self._tokens.use_auth(auth)

    def with_existing_token(self, token: Token | str) -> Self:
        """Use a token obtained elsewhere, e.g. from a previous session."""
        if isinstance(token, str):
            token = Token(access_token=token)
        self._tokens.set_token(token)
        return self

    def authenticate(self) -> Token | None:
        """Make sure a valid token is held, authenticating if needed.

        Raises:
            ConfigurationError: If the strategy lacks required fields.
            AuthenticationError: If authentication failed.
        """
        return self._tokens.refresh_if_needed()

    # Datasets

    def get_entities(
        self,
        dataset: str,
        *,
        from_token: str | None = None,
        take: int = 0,
        reverse: bool = False,
        expand_uris: bool = False,
    ) -> Page[Entity]:
        """Get one page of entities from a dataset.

        Args:
            dataset: Dataset name.
            from_token: Continuation token to read from.
            take: Page size; 0 lets the server choose.
            reverse: Read in reverse order.
            expand_uris: Expand namespace prefixes in ids, refs and props.

        Raises:
            ParameterError: If the dataset name is empty.
            AuthenticationError: If authentication failed.
            RequestError: If the request failed.
            ClientProcessingError: If the response could not be decoded.
        """
        params = _page_params(from_key="from", token=from_token, take=take, reverse=reverse)
        return self._get_entity_page(dataset, "entities", params, expand_uris=expand_uris)

    def get_changes(
        self,
        dataset: str,
        *,
        since: str | None = None,
        take: int = 0,
        latest_only: bool = False,
        reverse: bool = False,
        expand_uris: bool = False,
    ) -> Page[Entity]:
        """Get one page of changes from a dataset.

        Args:
            dataset: Dataset name.
            since: Continuation token to read changes after.
            take: Page size; 0 lets the server choose.
            latest_only: Only the latest version of each entity.
            reverse: Read in reverse order.
            expand_uris: Expand namespace prefixes in ids, refs and props.

        Raises:
            ParameterError: If the dataset name is empty.
            AuthenticationError: If authentication failed.
            RequestError: If the request failed.
            ClientProcessingError: If the response could not be decoded.
        """
        params = _page_params(from_key="since", token=since, take=take, reverse=reverse)
        if latest_only:
            params["latestOnly"] = "true"
        return self._get_entity_page(dataset, "changes", params, expand_uris=expand_uris)

    def get_entities_stream(
        self,
        dataset: str,
        *,
        from_token: str | None = None,
        take: int = 0,
        reverse: bool = False,
        expand_uris: bool = False,
    ) -> StreamIterator[Entity]:
        """Iterate over all entities of a dataset, one page at a time.

        ``take`` sets the page size. The first page is requested before
        this method returns.
        """
        _require_dataset(dataset)
        self.authenticate()

        def fetch(token: str | None) -> Page[Entity]:
            return self.get_entities(
                dataset,
                from_token=token,
                take=take,
                reverse=reverse,
                expand_uris=expand_uris,
            )

        return StreamIterator(fetch, from_token)

    def get_changes_stream(
        self,
        dataset: str,
        *,
        since: str | None = None,
        take: int = 0,
        latest_only: bool = False,
        reverse: bool = False,
        expand_uris: bool = False,
    ) -> StreamIterator[Entity]:
        """Iterate over the changes of a dataset, one page at a time.

        ``take`` sets the page size. The first page is requested before
        this method returns.
        """
        _require_dataset(dataset)
        self.authenticate()

        def fetch(token: str | None) -> Page[Entity]:
            return self.get_changes(
                dataset,
                since=token,
                take=take,
                latest_only=latest_only,
                reverse=reverse,
                expand_uris=expand_uris,
            )

        return StreamIterator(fetch, since)

    # Queries

    def run_query(self, query: Query) -> list[dict[str, Any]]:
        """Run a graph traversal query.

        Raises:
            ParameterError: If no query is given.
            AuthenticationError: If authentication failed.
            RequestError: If the request failed.
            ClientProcessingError: If the result is not a list of objects.
        """
        if query is None:
            raise ParameterError("query cannot be empty", parameter="query")
        token = self.authenticate()
        data = request_json(
            self._http,
            "POST",
            "/query",
            operation="execute query",
            token=token,
            json=query.to_wire(),
        )
        return parse_query_result(data)

    def run_javascript_query(self, query: str) -> QueryResultIterator:
        """Run a JavaScript query and stream its results.

        The returned iterator holds the response open until the result array
        ends. Close it, or use it in a ``with`` block, when stopping early::

            with client.run_javascript_query(source) as results:
                for row in results:
                    ...

        Raises:
            ParameterError: If the query is empty.
            AuthenticationError: If authentication failed.
            RequestError: If the request failed.
        """
        if not query:
            raise ParameterError("query cannot be empty", parameter="query")
        token = self.authenticate()
        response = send_streaming(
            self._http,
            "POST",
            "/query",
            operation="execute query",
            token=token,
            headers={"Content-Type": JAVASCRIPT_QUERY_CONTENT_TYPE},
            json={"query": query},
        )
        self._logger.debug("Streaming query results", status_code=response.status_code)
        return QueryResultIterator(response)

    def _get_entity_page(
        self,
        dataset: str,
        resource: str,
        params: dict[str, str],
        *,
        expand_uris: bool,
    ) -> Page[Entity]:
        _require_dataset(dataset)
        token = self.authenticate()
        data = request_json(
            self._http,
            "GET",
            f"/datasets/{quote(dataset, safe='')}/{resource}",
            operation=f"get {resource}",
            token=token,
            params=params,
        )
        page = parse_entity_page(data, expand_uris=expand_uris)
        self._logger.debug(
            "Fetched page",
            dataset=dataset,
            resource=resource,
            count=len(page),
        )
        return page


def _require_dataset(dataset: str) -> None:
    if not dataset:
        raise ParameterError("dataset name is required", parameter="dataset")


def _page_params(
    *,
    from_key: str,
    token: str | None,
    take: int,
    reverse: bool,
) -> dict[str, str]:
    params: dict[str, str] = {}
    if token:
        params[from_key] = token
    if take > 0:
        params["limit"] = str(take)
    if reverse:
        params["reverse"] = "true"
    return params
