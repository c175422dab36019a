"""
Bearer tokens for Google APIs.

Uses GCP_ACCESS_TOKEN when configured (local runs, tests). Otherwise the
service account token is fetched from the metadata server and cached until
shortly before it expires.
"""

import logging
import time
from typing import Optional

import httpx

from slo_reporting.core.config import settings
from slo_reporting.sync.exceptions import AuthError
from slo_reporting.utils.retry_decorator import retry_external_api

logger = logging.getLogger(__name__)


class GoogleTokenProvider:
    def __init__(
        self,
        static_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.static_token = static_token if static_token is not None else settings.GCP_ACCESS_TOKEN
        self._http_client = http_client
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def _is_fresh(self) -> bool:
        return (
            self._token is not None
            and time.monotonic() < self._expires_at - settings.TOKEN_REFRESH_THRESHOLD_SECONDS
        )

    async def get_token(self) -> str:
        """Return a valid access token, refreshing it from the metadata server if needed."""
        if self.static_token:
            return self.static_token
        if self._is_fresh():
            return self._token

        client = self._http_client or httpx.AsyncClient(
            timeout=settings.HTTP_REQUEST_TIMEOUT_SECONDS
        )
        try:
            async for attempt in retry_external_api("MetadataServer"):
                with attempt:
                    response = await client.get(
                        settings.GCP_METADATA_TOKEN_URL,
                        headers={"Metadata-Flavor": "Google"},
                    )
                    response.raise_for_status()
        except httpx.HTTPError as e:
            raise AuthError(f"Fetching access token from metadata server failed: {e}") from e
        finally:
            if self._http_client is None:
                await client.aclose()

        try:
            data = response.json()
            token = data["access_token"]
            expires_in = int(data.get("expires_in", 0))
        except (ValueError, TypeError, KeyError) as e:
            raise AuthError(f"Metadata server returned an invalid token response: {e}") from e

        self._token = token
        self._expires_at = time.monotonic() + expires_in
        logger.debug(f"Refreshed Google access token (expires in {data.get('expires_in')}s)")
        return self._token
