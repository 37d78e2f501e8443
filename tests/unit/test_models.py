"""Unit tests for Pydantic models and entity batch decoding."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from conftest import entity_batch
from datahub_sdk.errors import ClientProcessingError
from datahub_sdk.models import (
    EntityContext,
    ProviderMetadata,
    Token,
    TokenResponse,
    parse_entity_page,
)


class TestTokenResponse:
    """Tests for TokenResponse model."""

    def test_valid_token_response(self, sample_token_response: dict) -> None:
        """Test creating a valid token response."""
        response = TokenResponse.model_validate(sample_token_response)
        assert response.expires_in == 3600
        assert response.refresh_token is None

    def test_unknown_fields_ignored(self) -> None:
        """Test extra fields from the server are dropped."""
        response = TokenResponse.model_validate({"access_token": "a", "id_token": "x"})
        assert response.token_type == "Bearer"

    def test_null_token_type_defaults_to_bearer(self) -> None:
        """Test a null token_type is accepted and presented as Bearer."""
        response = TokenResponse.model_validate(
            {"access_token": "a", "token_type": None, "expires_in": 60}
        )
        assert response.token_type is None
        assert Token.from_response(response).token_type == "Bearer"

    def test_empty_access_token_rejected(self) -> None:
        """Test an empty access token is invalid."""
        with pytest.raises(ValidationError):
            TokenResponse(access_token="")

    def test_negative_expiry_rejected(self) -> None:
        """Test expires_in must not be negative."""
        with pytest.raises(ValidationError):
            TokenResponse(access_token="a", expires_in=-1)


class TestToken:
    """Tests for Token validity rules."""

    def test_from_response_sets_expiry(self) -> None:
        """Test expires_in becomes an absolute expiry."""
        before = datetime.now(UTC)
        token = Token.from_response(TokenResponse(access_token="a", expires_in=60))
        assert token.expiry is not None
        assert before + timedelta(seconds=60) <= token.expiry

    def test_from_response_without_expiry(self) -> None:
        """Test a response without expires_in yields a token with no expiry."""
        token = Token.from_response(TokenResponse(access_token="a"))
        assert token.expiry is None
        assert token.is_valid(leeway_seconds=10)

    def test_leeway(self) -> None:
        """Test a token expiring inside the leeway is invalid."""
        token = Token(access_token="a", expiry=datetime.now(UTC) + timedelta(seconds=5))
        assert token.is_valid()
        assert not token.is_valid(leeway_seconds=10)
        assert token.is_expired(leeway_seconds=10)

    def test_uncacheable_is_never_valid(self) -> None:
        """Test cacheable=False overrides the expiry."""
        assert not Token(access_token="a", cacheable=False).is_valid()

    def test_empty_access_token_is_invalid(self) -> None:
        """Test a blank token is not presented."""
        assert not Token(access_token="").is_valid()

    def test_authorization_header(self) -> None:
        """Test the bearer header value."""
        assert Token(access_token="abc").authorization_header == "Bearer abc"


class TestProviderMetadata:
    """Tests for OpenID provider metadata."""

    def test_requires_token_endpoint(self) -> None:
        """Test metadata without a token endpoint is invalid."""
        with pytest.raises(ValidationError):
            ProviderMetadata.model_validate({"issuer": "https://idp.example.com"})

    def test_keeps_extra_fields(self) -> None:
        """Test unknown metadata fields are preserved."""
        metadata = ProviderMetadata.model_validate(
            {"token_endpoint": "https://idp/token", "grant_types_supported": ["x"]}
        )
        assert metadata.model_extra == {"grant_types_supported": ["x"]}


class TestEntityContext:
    """Tests for namespace expansion."""

    def test_expand_known_prefix(self) -> None:
        context = EntityContext(namespaces={"ns0": "http://example.com/"})
        assert context.expand("ns0:a") == "http://example.com/a"

    def test_unknown_prefix_unchanged(self) -> None:
        context = EntityContext(namespaces={"ns0": "http://example.com/"})
        assert context.expand("ns1:a") == "ns1:a"
        assert context.expand("plain") == "plain"


class TestParseEntityPage:
    """Tests for entity batch decoding."""

    def test_full_batch(self) -> None:
        """Test context, entities and continuation are separated."""
        page = parse_entity_page(
            entity_batch(
                {"id": "a", "recorded": 1, "props": {"name": "A"}},
                {"id": "b", "deleted": True},
                token="t1",
                namespaces={"ns0": "http://example.com/"},
            )
        )

        assert [entity.id for entity in page.items] == ["a", "b"]
        assert page.items[1].deleted
        assert page.continuation is not None
        assert page.continuation.token == "t1"
        assert page.context is not None
        assert page.context.namespaces == {"ns0": "http://example.com/"}
        assert len(page) == 2

    def test_empty_batch(self) -> None:
        """Test a batch with no entities is an empty page."""
        page = parse_entity_page([])
        assert page.is_empty
        assert page.continuation is None
        assert page.context is None

    def test_unknown_entity_fields_preserved(self) -> None:
        """Test entity keys outside the known set survive decoding."""
        page = parse_entity_page([{"id": "a", "custom": 1}])
        assert page.items[0].model_extra == {"custom": 1}

    def test_expansion_skipped_without_flag(self) -> None:
        """Test ids stay prefixed unless expansion is requested."""
        page = parse_entity_page(
            entity_batch({"id": "ns0:a"}, namespaces={"ns0": "http://example.com/"})
        )
        assert page.items[0].id == "ns0:a"

    @pytest.mark.parametrize(
        "data",
        [
            {"id": "a"},
            ["a"],
            [{"props": {}}],
            [{"id": "@continuation"}],
        ],
    )
    def test_malformed_batch(self, data: object) -> None:
        """Test malformed batches raise ClientProcessingError."""
        with pytest.raises(ClientProcessingError):
            parse_entity_page(data)
