"""
Google Play domain models - Immutable dataclasses for purchase verification.

NO DICTIONARIES - All data uses strongly typed models. The raw receipts on
VerificationResult are the one exception: they are Google's decoded JSON,
kept verbatim so callers can read fields this package does not interpret.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from play_iap.exceptions import ValidationError


def _require_str(value: object, name: str) -> None:
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    if not value:
        raise ValidationError(f"{name} cannot be empty")


def _require_int(value: object, name: str) -> None:
    # bool is an int subclass but never a valid timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")


@dataclass(frozen=True)
class ServiceAccountKey:
    """Service-account identity used to sign the OAuth assertion."""

    principal: str
    private_key: str = field(repr=False)

    def __post_init__(self) -> None:
        """Validate key fields."""
        _require_str(self.principal, "Service account client_email")
        _require_str(self.private_key, "Service account private_key")

    @classmethod
    def parse(cls, value: object) -> "ServiceAccountKey":
        """
        Normalize any accepted key encoding into a ServiceAccountKey.

        Accepts an existing key, a mapping in Google's service-account JSON
        shape, or that JSON serialized as str or bytes.
        """
        if isinstance(value, ServiceAccountKey):
            return value

        if isinstance(value, (str, bytes, bytearray)):
            try:
                value = json.loads(value)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise ValidationError("Service account key is not valid JSON") from exc

        if not isinstance(value, Mapping):
            raise ValidationError("Service account key must be an object")

        return cls(
            principal=value.get("client_email"),  # type: ignore[arg-type]
            private_key=value.get("private_key"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class PaymentRequest:
    """Validated purchase or subscription lookup request."""

    package_name: str
    product_id: str
    receipt: str = field(repr=False)
    credential: ServiceAccountKey
    is_subscription: bool = False

    def __post_init__(self) -> None:
        """Validate request fields."""
        _require_str(self.package_name, "Package name")
        _require_str(self.product_id, "Product ID")
        _require_str(self.receipt, "Receipt")
        if not isinstance(self.credential, ServiceAccountKey):
            raise ValidationError("Credential must be a ServiceAccountKey")
        if not isinstance(self.is_subscription, bool):
            raise ValidationError("is_subscription must be a boolean")

    @classmethod
    def parse(cls, value: object) -> "PaymentRequest":
        """Build a PaymentRequest from an instance or a plain mapping."""
        if isinstance(value, PaymentRequest):
            return value
        if not isinstance(value, Mapping):
            raise ValidationError("Payment request must be a PaymentRequest or a mapping")

        return cls(
            package_name=value.get("package_name"),  # type: ignore[arg-type]
            product_id=value.get("product_id"),  # type: ignore[arg-type]
            receipt=value.get("receipt"),  # type: ignore[arg-type]
            credential=ServiceAccountKey.parse(value.get("credential")),
            is_subscription=value.get("is_subscription", False),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class AccessToken:
    """Short-lived OAuth bearer token. Never cached between calls."""

    access_token: str = field(repr=False)
    token_type: str = "Bearer"
    expires_in: int | None = None


@dataclass(frozen=True)
class DeferralInfo:
    """Requested move of a subscription's next renewal date."""

    expected_expiry_time_millis: int
    desired_expiry_time_millis: int

    def __post_init__(self) -> None:
        """Validate deferral window."""
        _require_int(self.expected_expiry_time_millis, "expectedExpiryTimeMillis")
        _require_int(self.desired_expiry_time_millis, "desiredExpiryTimeMillis")
        if self.desired_expiry_time_millis <= self.expected_expiry_time_millis:
            raise ValidationError(
                "desiredExpiryTimeMillis must be greater than expectedExpiryTimeMillis"
            )

    @classmethod
    def parse(cls, value: object) -> "DeferralInfo":
        """Build DeferralInfo from an instance or Google's camelCase mapping."""
        if isinstance(value, DeferralInfo):
            return value
        if not isinstance(value, Mapping):
            raise ValidationError("deferralInfo must be an object")

        return cls(
            expected_expiry_time_millis=value.get("expectedExpiryTimeMillis"),  # type: ignore[arg-type]
            desired_expiry_time_millis=value.get("desiredExpiryTimeMillis"),  # type: ignore[arg-type]
        )

    def to_wire(self) -> dict[str, int]:
        """Body fragment for the subscriptions:defer call."""
        return {
            "expectedExpiryTimeMillis": self.expected_expiry_time_millis,
            "desiredExpiryTimeMillis": self.desired_expiry_time_millis,
        }


@dataclass(frozen=True)
class VerificationResult:
    """Result of Google Play purchase or subscription verification."""

    raw_receipt: dict[str, Any]
    raw_receipt_v2: dict[str, Any] | None  # subscriptions only
    transaction_id: str | None
    product_id: str
    purchase_date: int | None  # epoch millis
    expiration_date: int | None  # epoch millis

    @property
    def is_subscription(self) -> bool:
        """True when the result came from a subscription lookup."""
        return self.raw_receipt_v2 is not None
