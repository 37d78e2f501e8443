"""OpenID Connect provider discovery.

Only used by the client credentials strategy, to find the provider's token
endpoint from its ``.well-known/openid-configuration`` document. The issuer
in the document is not required to match the URL it was fetched from.
"""

from __future__ import annotations

import httpx
from pydantic import ValidationError as PydanticValidationError

from .errors import DiscoveryError
from .models import ProviderMetadata
from .telemetry import get_logger, trace_operation

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


def discovery_url(authorizer_url: str) -> str:
    """URL of the provider metadata document for an issuer URL."""
    return authorizer_url.rstrip("/") + WELL_KNOWN_PATH


def discover_provider(client: httpx.Client, authorizer_url: str) -> ProviderMetadata:
    """Fetch and parse provider metadata.

    Args:
        client: HTTP client used for the request.
        authorizer_url: Issuer URL of the OpenID provider.

    Returns:
        Parsed provider metadata.

    Raises:
        DiscoveryError: If the document cannot be fetched, is not JSON or
            does not name a token endpoint.
    """
    url = discovery_url(authorizer_url)
    try:
        absolute = httpx.URL(url).is_absolute_url
    except httpx.InvalidURL as e:
        raise DiscoveryError("authorizer url is not valid", issuer=authorizer_url, cause=e) from e
    if not absolute:
        raise DiscoveryError("authorizer url must be absolute", issuer=authorizer_url)

    with trace_operation("oidc_discovery", attributes={"oidc.issuer": authorizer_url}):
        try:
            response = client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DiscoveryError(
                f"unable to fetch provider metadata from {url}",
                issuer=authorizer_url,
                cause=e,
            ) from e

        if not response.is_success:
            raise DiscoveryError(
                f"provider metadata request returned http status {response.status_code}",
                issuer=authorizer_url,
            )

        try:
            metadata = ProviderMetadata.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise DiscoveryError(
                "provider metadata document is invalid",
                issuer=authorizer_url,
                cause=e,
            ) from e

    get_logger().debug(
        "Discovered OpenID provider",
        issuer=metadata.issuer,
        token_endpoint=metadata.token_endpoint,
    )
    return metadata
