"""Slash command parsing, request signing and the /slack/commands endpoint."""

import time
from urllib.parse import urlencode

import pytest

from spyglass.exceptions import CommandParseError, SlackSignatureError
from spyglass.slack.commands import SlashCommand, parse_command
from spyglass.slack.signature import compute_signature, verify_slack_signature

SECRET = "test-signing-secret"


class TestParseCommand:
    @pytest.mark.parametrize("text", ["on", "OFF", "  status  "])
    def test_preference_actions(self, text):
        assert parse_command(text).action == text.strip().lower()

    def test_leaderboard_defaults(self):
        assert parse_command("leaderboard", default_limit=10) == SlashCommand("leaderboard", "day", 10)

    def test_leaderboard_week(self):
        assert parse_command("leaderboard week", default_limit=10) == SlashCommand("leaderboard", "week", 10)

    def test_leaderboard_limit_without_period(self):
        assert parse_command("leaderboard 5") == SlashCommand("leaderboard", "day", 5)

    def test_leaderboard_all(self):
        assert parse_command("leaderboard week all") == SlashCommand("leaderboard", "week", None)

    @pytest.mark.parametrize("text", ["", "   ", None, "dance", "on please", "leaderboard month",
                                      "leaderboard day 0", "leaderboard day 3 extra", "leaderboard -2"])
    def test_rejected(self, text):
        with pytest.raises(CommandParseError):
            parse_command(text)


class TestSignature:
    def test_valid_signature(self):
        body = b"command=%2Fspyglass&text=on"
        ts = "1700000000"
        verify_slack_signature(SECRET, ts, body, compute_signature(SECRET, ts, body), now=1700000010)

    def test_tampered_body(self):
        ts = "1700000000"
        signature = compute_signature(SECRET, ts, b"text=on")
        with pytest.raises(SlackSignatureError, match="mismatch"):
            verify_slack_signature(SECRET, ts, b"text=off", signature, now=1700000000)

    def test_replayed_request(self):
        body = b"text=on"
        ts = "1700000000"
        with pytest.raises(SlackSignatureError, match="window"):
            verify_slack_signature(SECRET, ts, body, compute_signature(SECRET, ts, body), now=1700000301)

    def test_missing_headers(self):
        with pytest.raises(SlackSignatureError):
            verify_slack_signature(SECRET, None, b"", None)

    def test_malformed_timestamp(self):
        with pytest.raises(SlackSignatureError):
            verify_slack_signature(SECRET, "yesterday", b"", "v0=abc")

    def test_unconfigured_secret(self):
        with pytest.raises(SlackSignatureError):
            verify_slack_signature("", "1700000000", b"", "v0=abc", now=1700000000)


def signed_request(fields: dict[str, str], secret: str = SECRET, timestamp: int | None = None):
    body = urlencode(fields).encode()
    ts = str(timestamp if timestamp is not None else int(time.time()))
    headers = {
        "Content-Type": "application/x-www-form-urlencoded",
        "X-Slack-Request-Timestamp": ts,
        "X-Slack-Signature": compute_signature(secret, ts, body),
    }
    return body, headers


def command(text: str, name: str = "/spyglass") -> dict[str, str]:
    return {"command": name, "text": text, "user_id": "U1", "channel_id": "C1"}


class TestSlashCommandEndpoint:
    async def post(self, api_client, fields, **kwargs):
        body, headers = signed_request(fields, **kwargs)
        return await api_client.post("/slack/commands", content=body, headers=headers)

    async def test_turn_on(self, api_client, services):
        response = await self.post(api_client, command("on"))

        assert response.status_code == 200
        assert response.json() == {
            "response_type": "ephemeral",
            "text": "✅ Coding notifications have been turned on in this channel.",
        }
        assert await services.preferences.get_preference("U1", "C1") is True

    async def test_turn_off_after_on(self, api_client, services):
        await self.post(api_client, command("on"))
        response = await self.post(api_client, command("off"))

        assert response.json()["text"].endswith("turned off in this channel.")
        assert await services.preferences.get_preference("U1", "C1") is False

    async def test_status_without_preference(self, api_client):
        response = await self.post(api_client, command("status"))
        assert response.json() == {
            "response_type": "ephemeral",
            "text": "You have no notification preferences set for this channel. Notifications are disabled.",
        }

    async def test_status_enabled(self, api_client):
        await self.post(api_client, command("on"))
        response = await self.post(api_client, command("status"))
        assert response.json()["text"] == "Notifications are currently enabled in this channel."

    async def test_leaderboard_is_in_channel(self, api_client):
        response = await self.post(api_client, command("leaderboard week"))
        assert response.json() == {
            "response_type": "in_channel",
            "text": "No coding activity found for this week.",
        }

    @pytest.mark.parametrize("text", ["", "dance", "leaderboard month"])
    async def test_usage_on_bad_text(self, api_client, text):
        response = await self.post(api_client, command(text))
        assert response.status_code == 200
        body = response.json()
        assert body["response_type"] == "ephemeral"
        assert body["text"].startswith("Usage:")
        assert "`/spyglass leaderboard [day|week] [N|all]`" in body["text"]

    async def test_other_command_rejected(self, api_client):
        response = await self.post(api_client, command("on", name="/other"))
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid command"}

    async def test_bad_signature_rejected(self, api_client, services):
        response = await self.post(api_client, command("on"), secret="wrong-secret")
        assert response.status_code == 401
        assert await services.preferences.get_preference("U1", "C1") is None

    async def test_stale_request_rejected(self, api_client):
        response = await self.post(api_client, command("on"), timestamp=int(time.time()) - 600)
        assert response.status_code == 401

    async def test_request_id_echoed(self, api_client):
        body, headers = signed_request(command("status"))
        headers["X-Request-Id"] = "req-123"
        response = await api_client.post("/slack/commands", content=body, headers=headers)
        assert response.headers["X-Request-Id"] == "req-123"
