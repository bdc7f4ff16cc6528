"""Concrete implementation of the HTTPClient interface using httpx.

Hides the specifics of the httpx library and translates its exceptions into
the domain error taxonomy. The request client owns the per-attempt timeout,
so the underlying httpx client is created without one.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from batchcall.domain.errors import AttemptTimeoutError, TransportError
from batchcall.domain.interfaces.http_client import HTTPClient
from batchcall.domain.models.common import Headers, HttpResponse

logger = logging.getLogger(__name__)


class HttpxClient(HTTPClient):
    """httpx implementation of the HTTPClient interface."""

    def __init__(
        self,
        base_url: str = "",
        cookies: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the adapter.

        Args:
            base_url: Prefix for relative request URLs.
            cookies: Session cookies sent with every request.
            client: Pre-built AsyncClient (e.g. with a mock transport); when
                given, base_url and cookies are ignored.
        """
        self._base_url = base_url.rstrip("/")
        self._cookies = cookies or {}
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                cookies=self._cookies,
                timeout=None,
            )
        return self._client

    async def post_json(self, url: str, payload: Any, headers: Headers) -> HttpResponse:
        client = await self._get_client()
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        try:
            response = await client.post(url, content=body, headers=headers)
        except httpx.TimeoutException as e:
            raise AttemptTimeoutError(f"Transport timeout calling {url}: {e}") from e
        except (httpx.UnsupportedProtocol, httpx.LocalProtocolError):
            # Malformed request on our side, not a connectivity failure
            raise
        except httpx.TransportError as e:
            raise TransportError(f"Network error calling {url}: {type(e).__name__}: {e}") from e

        logger.debug(f"POST {url} -> {response.status_code}")
        return HttpResponse(
            status=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpxClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
