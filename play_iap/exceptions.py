"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""


class BillingError(Exception):
    """Base exception for all billing errors."""

    pass


class ValidationError(BillingError, ValueError):
    """Raised when caller input is malformed. Never reaches the network."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Validation failed: {message}")


class AuthError(BillingError):
    """Raised when the service-account credential exchange fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(f"Authentication failed: {message}")


class UpstreamError(BillingError):
    """Raised when Google Play answers with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Received {status_code} status code with body: {body}")


class DecodeError(BillingError):
    """Raised when a successful response body is not the expected JSON."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Decode failed: {message}")


class TransportError(BillingError):
    """Raised when the HTTP request itself fails (DNS, TLS, connection reset)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Transport error: {message}")
