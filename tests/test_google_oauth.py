"""
Tests for Google service-account OAuth.

Tests assertion signing and the token exchange round trip.
"""

import jwt
import pytest
from conftest import ACCESS_TOKEN, CLIENT_EMAIL, FakeTransport, json_response

from play_iap.exceptions import AuthError, TransportError
from play_iap.services.google_oauth import (
    JWT_BEARER_GRANT_TYPE,
    ServiceAccountAuth,
    sign_assertion,
)
from play_iap.services.google_urls import PUBLISHER_SCOPE, TOKEN_URL
from play_iap.services.http_transport import TransportResponse

NOW = 1_700_000_000


def _decode(assertion: str, public_key_pem: str) -> dict:
    return jwt.decode(
        assertion,
        public_key_pem,
        algorithms=["RS256"],
        audience=TOKEN_URL,
        options={"verify_exp": False},
    )


class TestSignAssertion:
    """Tests for sign_assertion."""

    def test_claims(self, private_key_pem, public_key_pem):
        """Assertion binds principal, scope, audience and lifetime."""
        assertion = sign_assertion(
            CLIENT_EMAIL,
            private_key_pem,
            PUBLISHER_SCOPE,
            audience=TOKEN_URL,
            issued_at=NOW,
            expires_at=NOW + 3600,
        )

        claims = _decode(assertion, public_key_pem)
        assert claims == {
            "iss": CLIENT_EMAIL,
            "scope": PUBLISHER_SCOPE,
            "aud": TOKEN_URL,
            "iat": NOW,
            "exp": NOW + 3600,
        }

    def test_rs256_header(self, private_key_pem):
        """Google only accepts RS256 assertions."""
        assertion = sign_assertion(
            CLIENT_EMAIL,
            private_key_pem,
            PUBLISHER_SCOPE,
            audience=TOKEN_URL,
            issued_at=NOW,
            expires_at=NOW + 60,
        )
        assert jwt.get_unverified_header(assertion)["alg"] == "RS256"

    def test_invalid_key_raises(self):
        """A non-PEM key cannot sign."""
        with pytest.raises((jwt.PyJWTError, ValueError)):
            sign_assertion(
                CLIENT_EMAIL,
                "not a key",
                PUBLISHER_SCOPE,
                audience=TOKEN_URL,
                issued_at=NOW,
                expires_at=NOW + 60,
            )


class TestGetToken:
    """Tests for ServiceAccountAuth.get_token."""

    @pytest.fixture
    def transport(self) -> FakeTransport:
        return FakeTransport()

    @pytest.fixture
    def auth(self, transport) -> ServiceAccountAuth:
        return ServiceAccountAuth(transport, clock=lambda: NOW + 0.75)

    @pytest.mark.asyncio
    async def test_returns_access_token(self, auth, transport, private_key_pem):
        """Successful exchange returns the access token."""
        token = await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)

        assert token.access_token == ACCESS_TOKEN
        assert token.token_type == "Bearer"
        assert token.expires_in == 3599

    @pytest.mark.asyncio
    async def test_posts_jwt_bearer_grant(self, auth, transport, private_key_pem, public_key_pem):
        """Exactly one form POST with the jwt-bearer grant and a valid assertion."""
        await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)

        assert len(transport.calls) == 1
        call = transport.calls[0]
        assert call.method == "POST"
        assert call.url == TOKEN_URL
        assert call.json is None
        assert call.data["grant_type"] == JWT_BEARER_GRANT_TYPE

        claims = _decode(call.data["assertion"], public_key_pem)
        assert claims["iss"] == CLIENT_EMAIL
        assert claims["scope"] == PUBLISHER_SCOPE
        assert claims["iat"] == NOW
        assert claims["exp"] == NOW + 3600

    @pytest.mark.asyncio
    async def test_custom_lifetime(self, transport, private_key_pem, public_key_pem):
        """Assertion lifetime is configurable."""
        auth = ServiceAccountAuth(transport, assertion_lifetime_seconds=600, clock=lambda: NOW)

        await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)

        claims = _decode(transport.calls[0].data["assertion"], public_key_pem)
        assert claims["exp"] - claims["iat"] == 600

    @pytest.mark.asyncio
    async def test_token_not_cached(self, auth, transport, private_key_pem):
        """Every call performs its own exchange."""
        await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)
        await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)

        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_invalid_key_is_auth_error(self, auth, transport):
        """An unusable private key fails before any network call."""
        with pytest.raises(AuthError, match="Could not sign assertion"):
            await auth.get_token(CLIENT_EMAIL, "-----BEGIN NOTHING-----", PUBLISHER_SCOPE)

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_rejected_assertion(self, auth, transport, private_key_pem):
        """invalid_grant from Google is AuthError with status and body."""
        transport.token_response = json_response(
            400, {"error": "invalid_grant", "error_description": "Invalid JWT Signature."}
        )

        with pytest.raises(AuthError) as exc_info:
            await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)

        assert exc_info.value.status_code == 400
        assert "Invalid JWT Signature." in exc_info.value.body

    @pytest.mark.asyncio
    async def test_network_failure(self, auth, transport, private_key_pem):
        """TransportError during exchange is wrapped as AuthError."""
        transport.token_response = TransportError("ConnectError: name resolution failed")

        with pytest.raises(AuthError) as exc_info:
            await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, TransportError)

    @pytest.mark.asyncio
    async def test_invalid_json_response(self, auth, transport, private_key_pem):
        """Non-JSON token response is AuthError."""
        transport.token_response = TransportResponse(200, {}, "<html></html>")

        with pytest.raises(AuthError, match="invalid JSON"):
            await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)

    @pytest.mark.asyncio
    async def test_missing_access_token(self, auth, transport, private_key_pem):
        """200 without access_token is AuthError."""
        transport.token_response = json_response(200, {"token_type": "Bearer"})

        with pytest.raises(AuthError, match="no access_token"):
            await auth.get_token(CLIENT_EMAIL, private_key_pem, PUBLISHER_SCOPE)

    def test_token_hidden_from_repr(self):
        """AccessToken repr never shows the secret."""
        from play_iap.models.google_play import AccessToken

        assert ACCESS_TOKEN not in repr(AccessToken(access_token=ACCESS_TOKEN))
