"""HTTP client for the time tracker's summary endpoint."""

from __future__ import annotations

import base64

import httpx
import structlog
from pydantic import ValidationError

from spyglass.config import Settings
from spyglass.exceptions import SummaryFetchError
from spyglass.schemas import ActivitySummary

logger = structlog.get_logger()


def build_auth_header(api_key: str) -> str:
    """Summary API expects the raw key base64-encoded as a bearer token."""
    encoded = base64.b64encode(api_key.encode("utf-8")).decode("ascii")
    return f"Bearer {encoded}"


class SummaryClient:
    """Fetches cumulative per-project and per-language totals for one user."""

    def __init__(
        self,
        url: str,
        interval: str = "all_time",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.interval = interval
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> SummaryClient:
        return cls(
            settings.summary_api_url,
            interval=settings.summary_interval,
            timeout=settings.http_timeout_seconds,
            client=client,
        )

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_summary(self, api_key: str) -> ActivitySummary:
        """Fetch the user's summary for the configured interval.

        Raises:
            SummaryFetchError: on transport errors, non-2xx responses or
                a body that does not look like a summary.
        """
        if self._client is None:
            raise SummaryFetchError("Summary client not opened. Call open() first.")

        try:
            response = await self._client.get(
                self.url,
                params={"interval": self.interval},
                headers={
                    "Accept": "application/json",
                    "Authorization": build_auth_header(api_key),
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise SummaryFetchError(f"Summary request failed: {exc}") from exc

        if response.status_code >= 300:
            raise SummaryFetchError(
                f"Summary API returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return ActivitySummary.from_payload(response.json())
        except (ValueError, ValidationError) as exc:
            raise SummaryFetchError(f"Malformed summary payload: {exc}") from exc
