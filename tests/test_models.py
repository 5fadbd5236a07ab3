"""Tests for the shared Pydantic models."""

from __future__ import annotations

import httpx
import pytest
from pydantic import ValidationError

from ravenauth.models import (
    CachedToken,
    ChallengeContext,
    CredentialDescriptor,
    NativeCredential,
    SessionConfig,
)


class TestCredentialDescriptor:
    def test_defaults_to_no_credentials(self) -> None:
        creds = CredentialDescriptor()
        assert not creds.has_api_key
        assert not creds.has_native_credential

    def test_is_frozen(self) -> None:
        creds = CredentialDescriptor(api_key="orders/secret")
        with pytest.raises(ValidationError):
            creds.api_key = "other/secret"  # type: ignore[misc]

    def test_api_key_hidden_from_repr(self) -> None:
        creds = CredentialDescriptor(api_key="orders/TopSecret")
        assert "TopSecret" not in repr(creds)

    def test_accepts_httpx_auth_as_native_credential(self) -> None:
        auth = httpx.BasicAuth("DOMAIN\\user", "pw")
        creds = CredentialDescriptor(native_credential=auth)
        assert creds.native_credential is auth
        assert creds.has_native_credential

    def test_equality(self) -> None:
        native = NativeCredential()
        assert CredentialDescriptor(api_key="a/b", native_credential=native) == CredentialDescriptor(
            api_key="a/b", native_credential=native
        )


class TestNativeCredential:
    def test_default_identity(self) -> None:
        assert NativeCredential().is_default
        assert not NativeCredential(username="svc-orders", domain="CORP").is_default


class TestSessionConfig:
    def test_strips_trailing_slash(self) -> None:
        config = SessionConfig(server_url="https://db.example.com/")
        assert config.server_url == "https://db.example.com"

    def test_credentials_carries_api_key(self) -> None:
        config = SessionConfig(server_url="https://db.example.com", api_key="orders/secret")
        native = NativeCredential()
        creds = config.credentials(native)
        assert creds.api_key == "orders/secret"
        assert creds.native_credential is native

    def test_defaults(self) -> None:
        config = SessionConfig(server_url="https://db.example.com")
        assert config.timeout == 30.0
        assert config.verify_ssl is True
        assert config.allow_basic_over_http is False


class TestCachedToken:
    def test_authorization_header(self) -> None:
        token = CachedToken(
            bearer_value="abc",
            issued_for="https://db.example.com",
            source_endpoint="https://db.example.com/OAuth/API-Key",
        )
        assert token.authorization == "Bearer abc"

    def test_bearer_hidden_from_repr(self) -> None:
        token = CachedToken(
            bearer_value="very-secret-token",
            issued_for="https://db.example.com",
            source_endpoint="https://db.example.com/OAuth/API-Key",
        )
        assert "very-secret-token" not in repr(token)


class TestChallengeContext:
    def test_from_response_extracts_headers(self, challenge) -> None:
        response = challenge(
            401,
            headers=[
                ("OAuth-Source", "https://db.example.com/OAuth/API-Key"),
                ("WWW-Authenticate", "Negotiate"),
                ("WWW-Authenticate", "NTLM"),
            ],
            authorization="Bearer old",
        )
        ctx = ChallengeContext.from_response(response)

        assert ctx.status_code == 401
        assert ctx.oauth_source == "https://db.example.com/OAuth/API-Key"
        assert ctx.www_authenticate == ("Negotiate", "NTLM")
        assert ctx.required_auth is None
        assert ctx.rejected_authorization == "Bearer old"

    def test_empty_header_treated_as_absent(self, challenge) -> None:
        ctx = ChallengeContext.from_response(challenge(401, headers={"OAuth-Source": ""}))
        assert ctx.oauth_source is None
        assert not ctx.is_legacy_oauth_source

    def test_response_without_request(self) -> None:
        ctx = ChallengeContext.from_response(httpx.Response(403))
        assert ctx.status_code == 403
        assert ctx.rejected_authorization is None

    @pytest.mark.parametrize(
        "source",
        [
            "https://db.example.com/OAuth/API-Key",
            "https://db.example.com/oauth/api-key",
            "https://db.example.com/OAUTH/API-KEY",
        ],
    )
    def test_current_endpoint_is_not_legacy(self, source: str) -> None:
        assert not ChallengeContext(status_code=401, oauth_source=source).is_legacy_oauth_source

    def test_other_endpoint_is_legacy(self) -> None:
        ctx = ChallengeContext(status_code=401, oauth_source="http://old-server/OAuth/Token")
        assert ctx.is_legacy_oauth_source

    @pytest.mark.parametrize(
        "values,expected",
        [
            (("NTLM",), True),
            (("Negotiate",), True),
            (("Basic realm=\"x\"", "negotiate abc"), True),
            (("Basic realm=\"x\"",), False),
            (("Basic realm=\"x\", NTLM",), True),
            (("Negotiate YIIGhgYGKwYBBQUCoIIGejCCBnag==",), True),
            (("Basic realm=\"ntlm-gateway\"",), False),
            (("Basic realm=\"corp, negotiate proxy\"",), False),
            (("Bearer realm=\"db\", scope=\"ntlm\"",), False),
            ((), False),
        ],
    )
    def test_offers_integrated_auth(self, values: tuple[str, ...], expected: bool) -> None:
        ctx = ChallengeContext(status_code=401, www_authenticate=values)
        assert ctx.offers_integrated_auth is expected

    def test_requires_windows_auth_is_exact(self) -> None:
        assert ChallengeContext(status_code=403, required_auth="Windows").requires_windows_auth
        assert not ChallengeContext(status_code=403, required_auth="OAuth").requires_windows_auth
        assert not ChallengeContext(status_code=403).requires_windows_auth
