"""
Google service-account OAuth.

Exchanges a signed JWT assertion for a short-lived access token using the
JWT bearer grant (RFC 7523). One round trip per call; nothing is cached.
"""

import json
import time
from collections.abc import Callable

import jwt
from structlog import get_logger

from play_iap.exceptions import AuthError, TransportError
from play_iap.models.google_play import AccessToken
from play_iap.services.google_urls import TOKEN_URL
from play_iap.services.http_transport import Transport

logger = get_logger(__name__)

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"


def sign_assertion(
    principal: str,
    private_key: str,
    scope: str,
    *,
    audience: str,
    issued_at: int,
    expires_at: int,
) -> str:
    """
    Build the RS256-signed assertion Google expects from a service account.

    Raises whatever PyJWT/cryptography raise for an unusable key.
    """
    payload = {
        "iss": principal,
        "scope": scope,
        "aud": audience,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


class ServiceAccountAuth:
    """Credential exchanger for Google service accounts."""

    def __init__(
        self,
        transport: Transport,
        *,
        token_url: str = TOKEN_URL,
        assertion_lifetime_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.transport = transport
        self.token_url = token_url
        self.assertion_lifetime_seconds = assertion_lifetime_seconds
        self._clock = clock

    async def get_token(self, principal: str, private_key: str, scope: str) -> AccessToken:
        """
        Exchange service-account credentials for an access token.

        Args:
            principal: Service account email (client_email)
            private_key: PEM-encoded RSA private key
            scope: OAuth scope the token is requested for

        Returns:
            Fresh access token

        Raises:
            AuthError: If signing, the network call or the exchange fails
        """
        issued_at = int(self._clock())
        try:
            assertion = sign_assertion(
                principal,
                private_key,
                scope,
                audience=self.token_url,
                issued_at=issued_at,
                expires_at=issued_at + self.assertion_lifetime_seconds,
            )
        except Exception as exc:
            logger.error("service_account_assertion_failed", principal=principal, error=str(exc))
            raise AuthError(f"Could not sign assertion: {exc}") from exc

        try:
            response = await self.transport.post(
                self.token_url,
                data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion},
            )
        except TransportError as exc:
            logger.error("token_exchange_transport_failed", principal=principal)
            raise AuthError(f"Token request failed: {exc.message}") from exc

        if not response.is_success:
            logger.error(
                "token_exchange_failed",
                principal=principal,
                status=response.status_code,
                text=response.text,
            )
            raise AuthError(
                f"Token endpoint returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            token_data = json.loads(response.text)
        except json.JSONDecodeError as exc:
            raise AuthError(
                "Token endpoint returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise AuthError(
                "Token endpoint response has no access_token",
                status_code=response.status_code,
                body=response.text,
            )

        expires_in = token_data.get("expires_in")
        logger.debug("token_exchange_succeeded", principal=principal, expires_in=expires_in)

        return AccessToken(
            access_token=access_token,
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=expires_in if isinstance(expires_in, int) else None,
        )
