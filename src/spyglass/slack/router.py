"""Slack slash-command endpoint."""

from __future__ import annotations

from urllib.parse import parse_qs

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from spyglass.exceptions import CommandParseError
from spyglass.notify import templates
from spyglass.services import Services, get_services
from spyglass.slack.commands import parse_command
from spyglass.slack.signature import verify_slack_signature

logger = structlog.get_logger()

router = APIRouter(prefix="/slack", tags=["Slack"])


def slack_response(text: str, in_channel: bool = False) -> dict[str, str]:
    return {"response_type": "in_channel" if in_channel else "ephemeral", "text": text}


@router.post("/commands", response_model=None)
async def slash_command(
    request: Request,
    services: Services = Depends(get_services),  # noqa: B008
) -> dict[str, str] | JSONResponse:
    """Handle ``/spyglass`` invocations."""
    settings = services.settings
    body = await request.body()
    verify_slack_signature(
        settings.slack_signing_secret,
        request.headers.get("X-Slack-Request-Timestamp"),
        body,
        request.headers.get("X-Slack-Signature"),
        max_age_seconds=settings.slack_request_max_age_seconds,
    )

    form = {key: values[0] for key, values in parse_qs(body.decode("utf-8"), keep_blank_values=True).items()}
    if form.get("command") != settings.slack_command:
        raise HTTPException(status_code=400, detail="Invalid command")

    user_id = form.get("user_id", "")
    channel_id = form.get("channel_id", "")
    log = logger.bind(user=user_id, channel=channel_id)

    try:
        command = parse_command(form.get("text"), default_limit=settings.leaderboard_default_limit)
    except CommandParseError as exc:
        log.info("slash_command_unparsed", text=form.get("text"), reason=str(exc))
        return slack_response(templates.usage(settings.slack_command))

    log.info("slash_command", action=command.action, period=command.period, limit=command.limit)

    try:
        if command.action == "leaderboard":
            text = await services.leaderboard.leaderboard(channel_id, command.period, command.limit)
            return slack_response(text, in_channel=True)

        if command.action == "status":
            enabled = await services.preferences.get_preference(user_id, channel_id)
            return slack_response(templates.preference_status(enabled))

        enabled = command.action == "on"
        await services.preferences.set_preference(user_id, channel_id, enabled)
        return slack_response(templates.preference_updated(enabled))
    except Exception:
        log.exception("slash_command_failed", action=command.action)
        return JSONResponse(status_code=500, content=slack_response(templates.GENERIC_ERROR))
