"""HTTP transport shared by every backend.

All network I/O goes through a single Fetcher instance. The Fetcher receives
an httpx.AsyncClient via constructor injection; whoever builds the client owns
its lifecycle. httpx exceptions and non-2xx statuses are translated here into
the hnkit error taxonomy, so nothing above this module sees httpx types.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from hnkit.errors import (
    ClientError,
    DecodeError,
    ServerError,
    TransportError,
    TransportErrorKind,
)

if TYPE_CHECKING:
    from hnkit.config import NetworkSettings
    from hnkit.models.auth import AuthToken

log = structlog.get_logger()


def build_http_client(settings: NetworkSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once per HNClient."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.request_timeout),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=min(20, settings.max_connections),
        ),
    )


def classify_transport_error(exc: httpx.HTTPError) -> TransportErrorKind:
    if isinstance(exc, httpx.TimeoutException):
        return TransportErrorKind.TIMEOUT
    if isinstance(exc, httpx.ConnectError):
        return TransportErrorKind.NOT_CONNECTED
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.ReadError, httpx.WriteError)):
        return TransportErrorKind.CONNECTION_LOST
    return TransportErrorKind.OTHER


def check_status(response: httpx.Response, url: str) -> None:
    """Raise ClientError for 4xx and ServerError for 5xx responses."""
    status = response.status_code
    if 400 <= status < 500:
        raise ClientError(status, f"HTTP {status} fetching {url}")
    if status >= 500:
        raise ServerError(status, f"HTTP {status} fetching {url}")


class Fetcher:
    """Thin request layer over a shared httpx client."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def request(
        self,
        method: str,
        url: str,
        *,
        token: AuthToken | None = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        """Send one request. Redirect responses are returned as-is when not followed."""
        headers = {"Cookie": token.cookie_header()} if token is not None else None
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                follow_redirects=follow_redirects,
            )
        except httpx.HTTPError as exc:
            kind = classify_transport_error(exc)
            log.info("fetch_transport_error", url=url, kind=kind, error=str(exc))
            raise TransportError(kind, f"Network error fetching {url}: {exc}") from exc

        if not response.is_redirect:
            check_status(response, url)

        log.debug(
            "fetch_complete",
            method=method,
            url=url,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return response

    async def get_text(
        self,
        url: str,
        *,
        token: AuthToken | None = None,
        params: dict[str, Any] | None = None,
    ) -> str:
        response = await self.request("GET", url, token=token, params=params)
        try:
            return response.content.decode(response.encoding or "utf-8")
        except (UnicodeDecodeError, LookupError) as exc:
            raise DecodeError(f"Could not decode response from {url} as text") from exc

    async def get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        response = await self.request("GET", url, params=params)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"Malformed JSON from {url}: {exc}") from exc
