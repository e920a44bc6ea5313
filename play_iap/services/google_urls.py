"""
Google OAuth and Android Publisher URL builders.

Pure functions: every path segment and the access token are percent-encoded
one by one before interpolation, so reserved characters in a purchase token
never change the shape of the URL.
"""

from urllib.parse import quote

# OAuth
TOKEN_URL = "https://accounts.google.com/o/oauth2/token"

# Authentication scopes
PUBLISHER_SCOPE = "https://www.googleapis.com/auth/androidpublisher"

# Android Publisher API
API_BASE_URL = "https://www.googleapis.com/androidpublisher/v3/applications"


def _encode(value: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"URL component must be a string, got {type(value).__name__}")
    return quote(value, safe="")


def _token_url(
    base_url: str,
    package_name: str,
    kind: str,
    product_id: str,
    receipt: str,
    access_token: str,
    action: str = "",
) -> str:
    return (
        f"{base_url}/{_encode(package_name)}/purchases/{kind}/{_encode(product_id)}"
        f"/tokens/{_encode(receipt)}{action}?access_token={_encode(access_token)}"
    )


def purchases_products_get(
    package_name: str,
    product_id: str,
    receipt: str,
    access_token: str,
    base_url: str = API_BASE_URL,
) -> str:
    """purchases.products.get - one-time product purchase."""
    return _token_url(base_url, package_name, "products", product_id, receipt, access_token)


def purchases_subscriptions_get(
    package_name: str,
    product_id: str,
    receipt: str,
    access_token: str,
    base_url: str = API_BASE_URL,
) -> str:
    """purchases.subscriptions.get - v1 subscription purchase."""
    return _token_url(base_url, package_name, "subscriptions", product_id, receipt, access_token)


def purchases_subscriptions_get_v2(
    package_name: str,
    receipt: str,
    base_url: str = API_BASE_URL,
) -> str:
    """
    purchases.subscriptionsv2.get - enriched subscription state.

    No access_token query parameter: this endpoint is called with the
    bearer token in the Authorization header (see bearer_headers).
    """
    return (
        f"{base_url}/{_encode(package_name)}/purchases/subscriptionsv2"
        f"/tokens/{_encode(receipt)}"
    )


def purchases_subscriptions_cancel(
    package_name: str,
    product_id: str,
    receipt: str,
    access_token: str,
    base_url: str = API_BASE_URL,
) -> str:
    """purchases.subscriptions.cancel"""
    return _token_url(
        base_url, package_name, "subscriptions", product_id, receipt, access_token, ":cancel"
    )


def purchases_subscriptions_defer(
    package_name: str,
    product_id: str,
    receipt: str,
    access_token: str,
    base_url: str = API_BASE_URL,
) -> str:
    """purchases.subscriptions.defer"""
    return _token_url(
        base_url, package_name, "subscriptions", product_id, receipt, access_token, ":defer"
    )


def purchases_subscriptions_acknowledge(
    package_name: str,
    product_id: str,
    receipt: str,
    access_token: str,
    base_url: str = API_BASE_URL,
) -> str:
    """purchases.subscriptions.acknowledge"""
    return _token_url(
        base_url,
        package_name,
        "subscriptions",
        product_id,
        receipt,
        access_token,
        ":acknowledge",
    )


def bearer_headers(access_token: str) -> dict[str, str]:
    """Authorization header for endpoints that take the token out of the URL."""
    return {"Authorization": f"Bearer {access_token}"}
