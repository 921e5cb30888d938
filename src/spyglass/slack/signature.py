"""Slack request signing (v0 HMAC-SHA256)."""

from __future__ import annotations

import hashlib
import hmac
import time

from spyglass.exceptions import SlackSignatureError

SIGNATURE_VERSION = "v0"


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Signature Slack sends in ``X-Slack-Signature`` for ``body``."""
    base = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(secret.encode(), base, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    secret: str,
    timestamp: str | None,
    body: bytes,
    signature: str | None,
    max_age_seconds: int = 300,
    now: float | None = None,
) -> None:
    """Raise SlackSignatureError unless the request is fresh and correctly signed."""
    if not secret:
        raise SlackSignatureError("Signing secret is not configured")
    if not timestamp or not signature:
        raise SlackSignatureError("Missing signature headers")

    try:
        sent_at = int(timestamp)
    except ValueError as exc:
        raise SlackSignatureError("Malformed request timestamp") from exc

    if now is None:
        now = time.time()
    if abs(now - sent_at) > max_age_seconds:
        raise SlackSignatureError("Request timestamp outside the allowed window")

    expected = compute_signature(secret, timestamp, body)
    if not hmac.compare_digest(expected, signature):
        raise SlackSignatureError("Signature mismatch")
