"""Outbound Slack notifications with a provider abstraction.

Delivery is best-effort: ``send`` reports success as a bool and never
raises, so callers can fan out to several channels without one failure
suppressing the others.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx
import structlog

from spyglass.config import Settings

logger = structlog.get_logger()


class BaseNotifier(ABC):
    """Abstract base class for chat message delivery."""

    @abstractmethod
    async def send(self, channel_id: str, text: str) -> bool:
        """Post ``text`` to ``channel_id``. Returns True on success."""
        ...


class SlackNotifier(BaseNotifier):
    """Post messages through Slack's chat.postMessage Web API."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://slack.com/api",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> SlackNotifier:
        return cls(
            settings.slack_bot_token,
            api_url=settings.slack_api_url,
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

    async def send(self, channel_id: str, text: str) -> bool:
        """Send via Slack Web API."""
        if self._client is None:
            logger.warning("slack_send_skipped", channel=channel_id, reason="client_not_open")
            return False

        try:
            response = await self._client.post(
                f"{self.api_url}/chat.postMessage",
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
                json={"channel": channel_id, "text": text},
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError):
            logger.exception("slack_send_failed", channel=channel_id)
            return False

        # Slack reports most failures as 200 with ok=false.
        if not body.get("ok", False):
            logger.error("slack_send_rejected", channel=channel_id, error=body.get("error"))
            return False

        logger.info("slack_message_sent", channel=channel_id)
        return True
