"""Slack message templates.

Each function returns plain mrkdwn text ready for chat.postMessage or a
slash-command response body.
"""

from __future__ import annotations

MEDALS = ("🥇", "🥈", "🥉")
PLAIN_MARKER = "▫️"


def format_minutes(total_minutes: int) -> str:
    """``{h}h {m}m`` for an hour or more, ``{m}m`` otherwise."""
    hours, minutes = divmod(max(total_minutes, 0), 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def describe_elapsed(seconds: int) -> str:
    """Human phrase for an elapsed amount, e.g. "1 hour", "30 minutes", "45 seconds"."""
    if seconds < 60:
        return f"{seconds} second" if seconds == 1 else f"{seconds} seconds"
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    minutes = seconds // 60
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


def milestone_message(user_id: str, project: str, elapsed_seconds: int, total_seconds: int) -> str:
    """Celebration posted when a user crosses one or more notification periods."""
    return (
        f"🎉 <@{user_id}> just coded another {describe_elapsed(elapsed_seconds)} "
        f"on *{project}*! ({format_minutes(total_seconds // 60)} total)"
    )


def leaderboard_header(period: str) -> str:
    timeframe = "This Week" if period == "week" else "Today"
    return f"🏆 *Coding Leaderboard - {timeframe}*\n\n"


def leaderboard_empty(period: str) -> str:
    return f"No coding activity found for {'this week' if period == 'week' else 'today'}."


def rank_marker(rank: int) -> str:
    """Medal for ranks 1-3, plain marker below."""
    if 1 <= rank <= len(MEDALS):
        return MEDALS[rank - 1]
    return PLAIN_MARKER


USAGE_TEXT = (
    "Usage:\n"
    "• `{command} on` - Enable notifications\n"
    "• `{command} off` - Disable notifications\n"
    "• `{command} status` - Check notification status\n"
    "• `{command} leaderboard` - Show today's coding leaderboard\n"
    "• `{command} leaderboard week` - Show this week's coding leaderboard\n"
    "• `{command} leaderboard [day|week] [N|all]` - Limit the number of entries"
)


def usage(command: str) -> str:
    return USAGE_TEXT.format(command=command)


def preference_updated(enabled: bool) -> str:
    return f"✅ Coding notifications have been turned {'on' if enabled else 'off'} in this channel."


def preference_status(enabled: bool | None) -> str:
    if enabled is None:
        return "You have no notification preferences set for this channel. Notifications are disabled."
    return f"Notifications are currently {'enabled' if enabled else 'disabled'} in this channel."


GENERIC_ERROR = "Sorry, there was an error processing your request."
