"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fakes for testing:
- RSA service-account key generated once per session
- Recording transport that answers the token endpoint and replays
  queued Android Publisher responses
- Provider wired to the fake transport
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from play_iap.config import Settings
from play_iap.models.google_play import PaymentRequest, ServiceAccountKey
from play_iap.services.google_play_provider import GooglePlayProvider
from play_iap.services.google_urls import TOKEN_URL
from play_iap.services.http_transport import TransportResponse

ACCESS_TOKEN = "ya29.test-access-token"
CLIENT_EMAIL = "verifier@example-project.iam.gserviceaccount.com"


def json_response(status_code: int, body: Any) -> TransportResponse:
    """TransportResponse with a JSON body."""
    return TransportResponse(
        status_code=status_code,
        headers={"content-type": "application/json"},
        text=json.dumps(body),
    )


# ============================================================================
# Fake Transport
# ============================================================================


@dataclass
class RecordedCall:
    """One request seen by FakeTransport."""

    method: str
    url: str
    headers: Mapping[str, str] | None = None
    json: Any = None
    data: Mapping[str, str] | None = None


class FakeTransport:
    """Transport double: token endpoint answered automatically, API calls from a queue."""

    def __init__(self) -> None:
        self.token_response: TransportResponse | Exception = json_response(
            200, {"access_token": ACCESS_TOKEN, "token_type": "Bearer", "expires_in": 3599}
        )
        self.responses: list[TransportResponse | Exception] = []
        self.calls: list[RecordedCall] = []

    def queue(self, *responses: TransportResponse | Exception) -> "FakeTransport":
        self.responses.extend(responses)
        return self

    @property
    def token_calls(self) -> list[RecordedCall]:
        return [call for call in self.calls if call.url == TOKEN_URL]

    @property
    def api_calls(self) -> list[RecordedCall]:
        return [call for call in self.calls if call.url != TOKEN_URL]

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        return self._respond(RecordedCall("GET", url, headers=headers))

    async def post(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        return self._respond(RecordedCall("POST", url, headers=headers, json=json, data=data))

    def _respond(self, call: RecordedCall) -> TransportResponse:
        self.calls.append(call)
        if call.url == TOKEN_URL:
            response = self.token_response
        else:
            if not self.responses:
                raise AssertionError(f"Unexpected {call.method} call: no queued response")
            response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


# ============================================================================
# Key Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """RSA key pair shared by the whole test session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key: rsa.RSAPrivateKey) -> str:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def public_key_pem(rsa_key: rsa.RSAPrivateKey) -> str:
    return (
        rsa_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


@pytest.fixture
def service_account_info(private_key_pem: str) -> dict[str, str]:
    """Service account JSON as downloaded from the Google Cloud console."""
    return {
        "type": "service_account",
        "project_id": "example-project",
        "private_key_id": "0123456789abcdef",
        "private_key": private_key_pem,
        "client_email": CLIENT_EMAIL,
        "token_uri": "https://oauth2.googleapis.com/token",
    }


@pytest.fixture
def service_account_key(service_account_info: dict[str, str]) -> ServiceAccountKey:
    return ServiceAccountKey.parse(service_account_info)


# ============================================================================
# Request / Provider Fixtures
# ============================================================================


@pytest.fixture
def product_request(service_account_key: ServiceAccountKey) -> PaymentRequest:
    return PaymentRequest(
        package_name="com.example.app",
        product_id="coin_pack",
        receipt="tok123",
        credential=service_account_key,
    )


@pytest.fixture
def subscription_request(service_account_key: ServiceAccountKey) -> PaymentRequest:
    return PaymentRequest(
        package_name="com.example.app",
        product_id="coin_pack",
        receipt="tok123",
        credential=service_account_key,
        is_subscription=True,
    )


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def provider(fake_transport: FakeTransport) -> GooglePlayProvider:
    return GooglePlayProvider(fake_transport, settings=Settings())
