"""Tests for bearer tokens and cache keys."""

from datetime import datetime, timedelta, timezone

import pytest

from docker_registry_client.exceptions import InvalidAuthorizationHeaderError
from docker_registry_client.image.reference import parse
from docker_registry_client.image.registry import Registry
from docker_registry_client.registry.token import CacheKey, Token
from tests.fixtures.sample_data import DOCKERHUB_TOKEN, GHCR_TOKEN

ISSUED = datetime(2024, 9, 4, 8, 0, 0, tzinfo=timezone.utc)


class TestToken:
    """Tests for Token model."""

    def test_token_only_response(self):
        """Test a response with just a token never expires."""
        token = Token.model_validate(GHCR_TOKEN)
        assert token.value == GHCR_TOKEN["token"]
        assert token.expires_in is None
        assert token.issued_at is None
        assert token.expires_at is None
        assert token.is_valid(ISSUED + timedelta(days=365))

    def test_dockerhub_response(self):
        """Test extra fields are ignored and nanosecond timestamps accepted."""
        token = Token.model_validate(DOCKERHUB_TOKEN)
        assert token.expires_in == 300
        assert token.issued_at == datetime(2024, 9, 4, 8, 1, 41, 48681, tzinfo=timezone.utc)
        assert not hasattr(token, "access_token")

    def test_valid_until_expiry(self):
        token = Token(value="t", expires_in=300, issued_at=ISSUED)
        assert token.is_valid(ISSUED + timedelta(seconds=299))
        assert not token.is_valid(ISSUED + timedelta(seconds=300))
        assert not token.is_valid(ISSUED + timedelta(seconds=301))

    def test_expires_in_without_issued_at(self):
        """Test an unknowable expiry counts as expired."""
        token = Token(value="t", expires_in=300)
        assert not token.is_valid(ISSUED)

    def test_naive_issued_at_is_utc(self):
        token = Token(value="t", expires_in=60, issued_at=datetime(2024, 9, 4, 8, 0, 0))
        assert token.expires_at == ISSUED + timedelta(seconds=60)

    def test_missing_token_field(self):
        with pytest.raises(ValueError):
            Token.model_validate({"access_token": "x"})

    def test_json_round_trip_uses_wire_name(self):
        token = Token(value="t", expires_in=300, issued_at=ISSUED)
        dumped = token.model_dump(by_alias=True)
        assert dumped["token"] == "t"
        assert Token.model_validate_json(token.model_dump_json(by_alias=True)) == token


class TestAuthorizationHeaders:
    def test_bearer_header(self):
        token = Token(value="abc.def")
        assert token.authorization_headers() == {"Authorization": "Bearer abc.def"}

    @pytest.mark.parametrize("value", ["", "line\nbreak", "café"])
    def test_illegal_header_value(self, value):
        with pytest.raises(InvalidAuthorizationHeaderError):
            Token(value=value).authorization_headers()


class TestCacheKey:
    def test_from_reference_ignores_identifier(self):
        """Test tag and digest do not affect the key."""
        assert CacheKey.from_reference(parse("alpine:3.20")) == CacheKey.from_reference(
            parse("alpine:3.19")
        )

    def test_scope_path(self):
        assert CacheKey.from_reference(parse("alpine")).scope_path == "library/alpine"
        assert (
            CacheKey.from_reference(parse("ghcr.io/sigstore/cosign/cosign:v2.4.0")).scope_path
            == "sigstore/cosign/cosign"
        )
        assert (
            CacheKey.from_reference(parse("registry.access.redhat.com/ubi8")).scope_path
            == "ubi8"
        )

    def test_string_form(self):
        key = CacheKey(Registry.GITHUB, None, "aquasecurity", "trivy")
        assert str(key) == "ghcr.io/-/aquasecurity/trivy"

    def test_distinct_keys(self):
        """Test namespace and repository are not interchangeable."""
        first = CacheKey(Registry.GITHUB, "a", None, "b")
        second = CacheKey(Registry.GITHUB, None, "a", "b")
        assert first != second
        assert str(first) != str(second)

    def test_hashable(self):
        key = CacheKey(Registry.QUAY, None, "argoproj", "argocd")
        assert {key: 1}[CacheKey(Registry.QUAY, None, "argoproj", "argocd")] == 1
