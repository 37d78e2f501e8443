"""HTTP transport for the Data Hub SDK.

Builds the shared ``httpx.Client`` and wraps requests so that response
bodies are always released and failures surface as SDK errors. Nothing is
retried; a failed request propagates to the caller immediately.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import httpx

from .errors import ClientProcessingError, RequestError
from .telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from collections.abc import Generator

    from .config import ClientConfig
    from .models import Token

# Response bodies longer than this are cut when attached to an error.
_MAX_ERROR_BODY = 512


def create_http_client(config: ClientConfig) -> httpx.Client:
    """Create configured sync HTTP client.

    Args:
        config: SDK configuration.

    Returns:
        Configured httpx.Client.
    """
    return httpx.Client(
        base_url=config.server_url_str,
        timeout=httpx.Timeout(config.timeout),
        headers={
            "User-Agent": config.user_agent,
            "Accept": "application/json",
        },
        follow_redirects=False,
    )


def error_from_response(response: httpx.Response, message: str) -> RequestError:
    """Create a RequestError describing a non-2xx response.

    The response body must already have been read.
    """
    body = response.text[:_MAX_ERROR_BODY] if response.content else ""
    error = RequestError(
        f"{message}: http status {response.status_code}",
        status_code=response.status_code,
    )
    if body:
        error.details["body"] = body
    return error


def auth_headers(token: Token | None, headers: dict[str, str] | None = None) -> dict[str, str]:
    """Merge the bearer token into request headers."""
    merged = dict(headers or {})
    if token is not None:
        merged["Authorization"] = token.authorization_header
    return merged


def send_streaming(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    operation: str,
    token: Token | None = None,
    headers: dict[str, str] | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request and return the response with its body unread.

    The caller owns the returned response and must close it. A non-2xx
    response is read and closed here before the error is raised.

    Args:
        client: HTTP client.
        method: HTTP method.
        url: Request path or absolute URL.
        operation: Short description used in error messages.
        token: Bearer token to present, if any.
        headers: Extra request headers.
        **kwargs: Additional arguments for ``httpx.Client.build_request``.

    Raises:
        RequestError: On a non-2xx status or a transport failure.
    """
    with trace_operation(
        "http_request",
        attributes={"http.method": method, "http.url": url, "operation": operation},
    ):
        request = client.build_request(
            method, url, headers=auth_headers(token, headers), **kwargs
        )
        try:
            response = client.send(request, stream=True)
            if not response.is_success:
                try:
                    response.read()
                finally:
                    response.close()
        except httpx.HTTPError as e:
            raise RequestError(f"unable to {operation}", cause=e) from e
        if not response.is_success:
            get_logger().warning(
                "Request failed",
                operation=operation,
                status_code=response.status_code,
            )
            raise error_from_response(response, f"unable to {operation}")
        return response


@contextmanager
def open_response(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    operation: str,
    **kwargs: Any,
) -> Generator[httpx.Response, None, None]:
    """Send a request and yield the streaming response.

    The response is closed when the block exits, whether or not the body
    was consumed. Takes the same arguments as :func:`send_streaming`.

    Raises:
        RequestError: On a non-2xx status, or a transport failure while
            sending or reading the body.
    """
    response = send_streaming(client, method, url, operation=operation, **kwargs)
    try:
        yield response
    except httpx.HTTPError as e:
        raise RequestError(f"unable to {operation}", cause=e) from e
    finally:
        response.close()


def request_json(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    operation: str,
    token: Token | None = None,
    **kwargs: Any,
) -> Any:
    """Send a request and decode the JSON body.

    Raises:
        RequestError: On a non-2xx status or a transport failure.
        ClientProcessingError: If the body is not valid JSON.
    """
    with open_response(
        client, method, url, operation=operation, token=token, **kwargs
    ) as response:
        response.read()
    try:
        return response.json()
    except ValueError as e:
        raise ClientProcessingError(f"unable to decode {operation} response", cause=e) from e
