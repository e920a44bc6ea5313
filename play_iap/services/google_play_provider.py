"""
Google Play Provider Implementation.

NO DICTIONARIES - All data uses strongly typed models.

Each operation is one self-contained sequence:
validate -> exchange credentials -> call Android Publisher -> normalize.
Nothing is shared between calls and nothing is retried.
"""

import json
from collections.abc import Mapping
from typing import Any

from structlog import get_logger

from play_iap.config import Settings, get_settings
from play_iap.exceptions import DecodeError, UpstreamError
from play_iap.models.google_play import (
    DeferralInfo,
    PaymentRequest,
    VerificationResult,
)
from play_iap.observability.logging import log_context
from play_iap.services import google_urls
from play_iap.services.google_oauth import ServiceAccountAuth
from play_iap.services.http_transport import HttpxTransport, Transport, TransportResponse

logger = get_logger(__name__)


def _decode_object(text: str, what: str) -> dict[str, Any]:
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"{what} is not valid JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise DecodeError(f"{what} is not a JSON object")
    return decoded


def _millis(value: Any, field_name: str) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"{field_name} is not an integer: {value!r}") from exc


def parse_verification_result(
    payment: PaymentRequest,
    result_text: str,
    result_text_v2: str | None = None,
) -> VerificationResult:
    """
    Normalize Google's purchase/subscription response.

    Subscriptions report startTimeMillis, one-time products report
    purchaseTimeMillis; startTimeMillis wins when both are set.
    """
    result = _decode_object(result_text, "Purchase response")
    result_v2 = (
        _decode_object(result_text_v2, "Subscription v2 response")
        if result_text_v2 is not None
        else None
    )

    purchase_time_field = "startTimeMillis" if result.get("startTimeMillis") else "purchaseTimeMillis"

    return VerificationResult(
        raw_receipt=result,
        raw_receipt_v2=result_v2,
        transaction_id=result.get("orderId"),
        product_id=payment.product_id,
        purchase_date=_millis(result.get(purchase_time_field), purchase_time_field),
        expiration_date=_millis(result.get("expiryTimeMillis"), "expiryTimeMillis"),
    )


class GooglePlayProvider:
    """
    Google Play In-App Billing provider.

    Handles purchase verification and subscription management
    (cancel, defer, acknowledge).
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        auth: ServiceAccountAuth | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize Google Play provider.

        Args:
            transport: HTTP transport (defaults to httpx)
            auth: Credential exchanger (defaults to one sharing the transport)
            settings: Endpoint and timeout configuration
        """
        self.settings = settings or get_settings()
        self.transport = transport or HttpxTransport(timeout=self.settings.http_timeout_seconds)
        self.auth = auth or ServiceAccountAuth(
            self.transport,
            token_url=self.settings.token_url,
            assertion_lifetime_seconds=self.settings.assertion_lifetime_seconds,
        )

    async def _authenticate(self, payment: PaymentRequest) -> str:
        token = await self.auth.get_token(
            payment.credential.principal,
            payment.credential.private_key,
            self.settings.publisher_scope,
        )
        return token.access_token

    def _check_status(
        self,
        response: TransportResponse,
        endpoint: str,
        expected_status: int | None = None,
    ) -> None:
        """Raise UpstreamError unless the status is 2xx (or exactly expected_status)."""
        if expected_status is None:
            ok = response.is_success
        else:
            ok = response.status_code == expected_status
        if not ok:
            logger.error(
                "google_play_request_failed",
                endpoint=endpoint,
                status=response.status_code,
                error=response.text,
            )
            raise UpstreamError(response.status_code, response.text)

    async def verify_payment(
        self,
        request: PaymentRequest | Mapping[str, Any],
    ) -> VerificationResult:
        """
        Verify a one-time purchase or a subscription with Google Play.

        Subscriptions need two lookups: purchases.subscriptions (v1) and then,
        only if that succeeded, purchases.subscriptionsv2 with the same token.

        Args:
            request: Payment request or mapping with the same fields

        Returns:
            Verification result with raw receipts and derived dates

        Raises:
            ValidationError: If the request is malformed (no network call made)
            AuthError: If the credential exchange fails
            UpstreamError: If Google answers with a non-2xx status
            DecodeError: If a successful response is not a JSON object
            TransportError: If an HTTP call fails at the network level
        """
        payment = PaymentRequest.parse(request)
        base_url = self.settings.api_base_url

        with log_context(package_name=payment.package_name, product_id=payment.product_id):
            logger.info("verifying_google_play_purchase", subscription=payment.is_subscription)

            access_token = await self._authenticate(payment)

            if payment.is_subscription:
                response = await self.transport.get(
                    google_urls.purchases_subscriptions_get(
                        payment.package_name,
                        payment.product_id,
                        payment.receipt,
                        access_token,
                        base_url=base_url,
                    )
                )
                self._check_status(response, "purchases.subscriptions.get")

                response_v2 = await self.transport.get(
                    google_urls.purchases_subscriptions_get_v2(
                        payment.package_name,
                        payment.receipt,
                        base_url=base_url,
                    ),
                    headers=google_urls.bearer_headers(access_token),
                )
                self._check_status(response_v2, "purchases.subscriptionsv2.get")
                result_text_v2: str | None = response_v2.text
            else:
                response = await self.transport.get(
                    google_urls.purchases_products_get(
                        payment.package_name,
                        payment.product_id,
                        payment.receipt,
                        access_token,
                        base_url=base_url,
                    )
                )
                self._check_status(response, "purchases.products.get")
                result_text_v2 = None

            try:
                result = parse_verification_result(payment, response.text, result_text_v2)
            except DecodeError as exc:
                logger.error("google_play_response_undecodable", error=exc.message)
                raise

            logger.info(
                "google_play_purchase_verified",
                order_id=result.transaction_id,
                purchase_date=result.purchase_date,
                expiration_date=result.expiration_date,
            )

            return result

    async def cancel_subscription(self, request: PaymentRequest | Mapping[str, Any]) -> None:
        """
        Cancel a subscription. Google answers 204 on success; a 200 is a failure.

        Raises:
            ValidationError, AuthError, UpstreamError, TransportError
        """
        payment = PaymentRequest.parse(request)

        with log_context(package_name=payment.package_name, product_id=payment.product_id):
            logger.info("cancelling_google_play_subscription")

            access_token = await self._authenticate(payment)
            response = await self.transport.post(
                google_urls.purchases_subscriptions_cancel(
                    payment.package_name,
                    payment.product_id,
                    payment.receipt,
                    access_token,
                    base_url=self.settings.api_base_url,
                )
            )
            self._check_status(response, "purchases.subscriptions.cancel", expected_status=204)

            logger.info("google_play_subscription_cancelled")

    async def defer_subscription(
        self,
        request: PaymentRequest | Mapping[str, Any],
        deferral_info: DeferralInfo | Mapping[str, Any],
    ) -> dict[str, Any]:
        """
        Move a subscription's next renewal date.

        The deferral window is validated before any token is requested.

        Returns:
            Decoded response body (e.g. {"newExpiryTimeMillis": "..."})

        Raises:
            ValidationError, AuthError, UpstreamError, DecodeError, TransportError
        """
        payment = PaymentRequest.parse(request)
        deferral = DeferralInfo.parse(deferral_info)

        with log_context(package_name=payment.package_name, product_id=payment.product_id):
            logger.info(
                "deferring_google_play_subscription",
                expected_expiry_time_millis=deferral.expected_expiry_time_millis,
                desired_expiry_time_millis=deferral.desired_expiry_time_millis,
            )

            access_token = await self._authenticate(payment)
            response = await self.transport.post(
                google_urls.purchases_subscriptions_defer(
                    payment.package_name,
                    payment.product_id,
                    payment.receipt,
                    access_token,
                    base_url=self.settings.api_base_url,
                ),
                json={"deferralInfo": deferral.to_wire()},
            )
            self._check_status(response, "purchases.subscriptions.defer")

            result = _decode_object(response.text, "Defer response")
            logger.info(
                "google_play_subscription_deferred",
                new_expiry_time_millis=result.get("newExpiryTimeMillis"),
            )
            return result

    async def acknowledge_subscription(self, request: PaymentRequest | Mapping[str, Any]) -> str:
        """
        Acknowledge a subscription purchase (required within 3 days).

        Returns:
            Raw response text, undecoded (Google normally sends an empty body)

        Raises:
            ValidationError, AuthError, UpstreamError, TransportError
        """
        payment = PaymentRequest.parse(request)

        with log_context(package_name=payment.package_name, product_id=payment.product_id):
            logger.info("acknowledging_google_play_subscription")

            access_token = await self._authenticate(payment)
            response = await self.transport.post(
                google_urls.purchases_subscriptions_acknowledge(
                    payment.package_name,
                    payment.product_id,
                    payment.receipt,
                    access_token,
                    base_url=self.settings.api_base_url,
                )
            )
            self._check_status(response, "purchases.subscriptions.acknowledge")

            logger.info("google_play_subscription_acknowledged")
            return response.text


async def verify_payment(
    request: PaymentRequest | Mapping[str, Any],
    transport: Transport | None = None,
) -> VerificationResult:
    """Verify a purchase with a fresh provider."""
    return await GooglePlayProvider(transport).verify_payment(request)


async def cancel_subscription(
    request: PaymentRequest | Mapping[str, Any],
    transport: Transport | None = None,
) -> None:
    """Cancel a subscription with a fresh provider."""
    await GooglePlayProvider(transport).cancel_subscription(request)


async def defer_subscription(
    request: PaymentRequest | Mapping[str, Any],
    deferral_info: DeferralInfo | Mapping[str, Any],
    transport: Transport | None = None,
) -> dict[str, Any]:
    """Defer a subscription with a fresh provider."""
    return await GooglePlayProvider(transport).defer_subscription(request, deferral_info)


async def acknowledge_subscription(
    request: PaymentRequest | Mapping[str, Any],
    transport: Transport | None = None,
) -> str:
    """Acknowledge a subscription with a fresh provider."""
    return await GooglePlayProvider(transport).acknowledge_subscription(request)
