"""Exception hierarchy shared across the sync pipeline and the Slack surface."""

from __future__ import annotations


class SpyglassError(Exception):
    """Base class for all spyglass errors."""


class UpstreamUnavailableError(SpyglassError):
    """The upstream activity store could not be reached or queried."""


class SummaryFetchError(SpyglassError):
    """The summary API returned an error or an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SlackSignatureError(SpyglassError):
    """An inbound Slack request failed signature or freshness verification."""


class CommandParseError(SpyglassError):
    """Slash command text did not match any known action."""
