"""Slash command text parsing.

Grammar (case-insensitive, whitespace separated)::

    on | off | status
    leaderboard [day|week] [N|all]
"""

from __future__ import annotations

from dataclasses import dataclass

from spyglass.exceptions import CommandParseError

PREFERENCE_ACTIONS = ("on", "off", "status")
PERIODS = ("day", "week")


@dataclass(frozen=True)
class SlashCommand:
    action: str
    period: str = "day"
    limit: int | None = None  # None means no cap


def parse_command(text: str | None, default_limit: int | None = 10) -> SlashCommand:
    tokens = (text or "").strip().lower().split()
    if not tokens:
        raise CommandParseError("Empty command")

    action, args = tokens[0], tokens[1:]

    if action in PREFERENCE_ACTIONS:
        if args:
            raise CommandParseError(f"'{action}' takes no arguments")
        return SlashCommand(action=action)

    if action != "leaderboard":
        raise CommandParseError(f"Unknown action: {action}")

    if len(args) > 2:
        raise CommandParseError("Too many arguments for leaderboard")

    period = "day"
    limit = default_limit
    if args and args[0] in PERIODS:
        period = args.pop(0)
    if args:
        limit = _parse_limit(args.pop(0))
    if args:
        raise CommandParseError(f"Unexpected argument: {args[0]}")

    return SlashCommand(action="leaderboard", period=period, limit=limit)


def _parse_limit(token: str) -> int | None:
    if token == "all":
        return None
    if not token.isdigit() or int(token) < 1:
        raise CommandParseError(f"Invalid leaderboard size: {token}")
    return int(token)
