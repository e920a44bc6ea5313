"""
HTTP transport for Google APIs.

Returns status, headers and body text for every response; only network
failures raise. Status interpretation belongs to the caller.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from structlog import get_logger

from play_iap.exceptions import TransportError

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Raw HTTP response as seen by the orchestration layer."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class Transport(Protocol):
    """Anything that can GET and POST for the provider."""

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> TransportResponse: ...

    async def post(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
    ) -> TransportResponse: ...


class HttpxTransport:
    """
    Transport backed by httpx.

    Without an injected client every request opens and closes its own
    AsyncClient, so concurrent operations share nothing.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self.timeout = timeout

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        return await self._request("GET", url, headers=headers)

    async def post(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        return await self._request("POST", url, headers=headers, json=json, data=data)

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> TransportResponse:
        # Drop unset options so httpx does not send an empty body
        options = {key: value for key, value in kwargs.items() if value is not None}

        try:
            if self._client is not None:
                response = await self._client.request(method, url, **options)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, **options)
        except httpx.HTTPError as exc:
            # URL is not logged: v1 endpoints carry the access token
            logger.error("http_transport_failed", method=method, error=type(exc).__name__)
            raise TransportError(f"{method} request failed: {type(exc).__name__}: {exc}") from exc

        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )
