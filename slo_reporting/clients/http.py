"""
Shared plumbing for the Google REST clients.
"""

import logging
from typing import Any, Dict, Optional, Type

import httpx

from slo_reporting.clients.auth import GoogleTokenProvider
from slo_reporting.core.config import settings
from slo_reporting.sync.exceptions import SyncError
from slo_reporting.utils.retry_decorator import retry_external_api

logger = logging.getLogger(__name__)


class GoogleAPIClient:
    """
    Base for clients talking to a Google REST API over one httpx.AsyncClient.

    Transient failures are retried with tenacity; anything that still fails
    is raised as `error_class`, chained to the underlying httpx error.
    """

    service_name = "GoogleAPI"
    error_class: Type[SyncError] = SyncError

    def __init__(
        self,
        project: str,
        token_provider: Optional[GoogleTokenProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.project = project
        self.token_provider = token_provider or GoogleTokenProvider()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.HTTP_REQUEST_TIMEOUT_SECONDS
        )

    async def _headers(self) -> Dict[str, str]:
        token = await self.token_provider.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "X-Goog-User-Project": self.project,
        }

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Any = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Send a request with retries. Raises httpx errors unchanged."""
        request_headers = await self._headers()
        if headers:
            request_headers.update(headers)

        async for attempt in retry_external_api(self.service_name):
            with attempt:
                response = await self.http_client.request(
                    method, url, params=params, json=json, headers=request_headers
                )
                response.raise_for_status()
        return response

    async def _request(
        self,
        method: str,
        url: str,
        *,
        error_class: Optional[Type[SyncError]] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body, wrapping failures."""
        error_class = error_class or self.error_class
        try:
            response = await self._send(method, url, **kwargs)
        except httpx.HTTPStatusError as e:
            raise error_class(
                f"{self.service_name} {method} {url} failed with "
                f"{e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise error_class(f"{self.service_name} {method} {url} failed: {e}") from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise error_class(
                f"{self.service_name} {method} {url} returned a non-JSON body: {e}"
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
