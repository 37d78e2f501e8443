"""Pydantic models for the Data Hub client SDK.

Frozen models for token state, OAuth2/OIDC wire documents and the paged
entity batches returned by dataset reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ClientProcessingError

T = TypeVar("T")


class TokenResponse(BaseModel):
    """OAuth 2.0 token response from an authorization server."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1)
    token_type: str | None = "Bearer"
    expires_in: int | None = Field(default=None, ge=0)
    refresh_token: str | None = None
    scope: str | None = None


class Token(BaseModel):
    """Bearer token held by the token cache.

    ``expiry`` is None when the server did not say how long the token
    lives; such a token stays valid until it is invalidated. A token with
    ``cacheable`` set to False is never valid for reuse and is replaced on
    the next authenticated call.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expiry: datetime | None = None
    refresh_token: str | None = None
    cacheable: bool = True

    @classmethod
    def from_response(cls, response: TokenResponse) -> Self:
        """Create a Token from a TokenResponse with expiry calculation."""
        expiry = None
        if response.expires_in:
            expiry = datetime.now(UTC) + timedelta(seconds=response.expires_in)
        return cls(
            access_token=response.access_token,
            token_type=response.token_type or "Bearer",
            expiry=expiry,
            refresh_token=response.refresh_token,
        )

    def is_valid(self, *, leeway_seconds: int = 0) -> bool:
        """Check the token can be presented on the next request."""
        if not self.access_token or not self.cacheable:
            return False
        if self.expiry is None:
            return True
        return datetime.now(UTC) < self.expiry - timedelta(seconds=leeway_seconds)

    def is_expired(self, *, leeway_seconds: int = 0) -> bool:
        """Check if the token has an expiry and it has passed."""
        if self.expiry is None:
            return False
        return datetime.now(UTC) >= self.expiry - timedelta(seconds=leeway_seconds)

    @property
    def authorization_header(self) -> str:
        """Value for the ``Authorization`` request header."""
        return f"Bearer {self.access_token}"


class ProviderMetadata(BaseModel):
    """OpenID provider metadata; only the fields the SDK consumes."""

    model_config = ConfigDict(frozen=True, extra="allow")

    issuer: str | None = None
    token_endpoint: str = Field(..., min_length=1)
    jwks_uri: str | None = None


class Continuation(BaseModel):
    """Opaque server cursor. Stored and replayed, never interpreted."""

    model_config = ConfigDict(frozen=True)

    token: str


class EntityContext(BaseModel):
    """Namespace prefixes declared by the ``@context`` element of a batch."""

    model_config = ConfigDict(frozen=True)

    namespaces: dict[str, str] = Field(default_factory=dict)

    def expand(self, value: str) -> str:
        """Expand a ``prefix:local`` reference using the declared namespaces."""
        prefix, sep, local = value.partition(":")
        if sep and prefix in self.namespaces:
            return self.namespaces[prefix] + local
        return value


class Entity(BaseModel):
    """A single data hub entity; unknown keys are preserved."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    recorded: int | None = None
    deleted: bool = False
    refs: dict[str, Any] = Field(default_factory=dict)
    props: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class Page(Generic[T]):
    """One batch of a paged result set."""

    items: list[T] = field(default_factory=list)
    continuation: Continuation | None = None
    context: EntityContext | None = None

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        """True when the server returned no records."""
        return not self.items


def parse_entity_page(data: Any, *, expand_uris: bool = False) -> Page[Entity]:
    """Decode an entity graph batch into a Page.

    The batch is a JSON array holding an optional ``@context`` element,
    the entities, and an optional trailing ``@continuation`` element.

    Raises:
        ClientProcessingError: If the batch does not have that shape.
    """
    if not isinstance(data, list):
        raise ClientProcessingError("entity batch must be a JSON array")

    context: EntityContext | None = None
    continuation: Continuation | None = None
    entities: list[Entity] = []
    try:
        for element in data:
            if not isinstance(element, dict):
                raise ClientProcessingError("entity batch element must be a JSON object")
            element_id = element.get("id")
            if element_id == "@context":
                context = EntityContext(namespaces=element.get("namespaces") or {})
            elif element_id == "@continuation":
                continuation = Continuation(token=element.get("token"))
            else:
                entities.append(Entity.model_validate(element))
    except PydanticValidationError as e:
        raise ClientProcessingError("unable to parse entity batch", cause=e) from e

    if expand_uris and context is not None:
        entities = [_expand_entity(entity, context) for entity in entities]

    return Page(items=entities, continuation=continuation, context=context)


def _expand_entity(entity: Entity, context: EntityContext) -> Entity:
    def expand_ref(value: Any) -> Any:
        if isinstance(value, str):
            return context.expand(value)
        if isinstance(value, list):
            return [expand_ref(v) for v in value]
        return value

    return entity.model_copy(
        update={
            "id": context.expand(entity.id),
            "refs": {context.expand(k): expand_ref(v) for k, v in entity.refs.items()},
            "props": {context.expand(k): v for k, v in entity.props.items()},
        }
    )
