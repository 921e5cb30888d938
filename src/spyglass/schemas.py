"""Validated shapes for upstream heartbeats and summary payloads.

Heartbeat rows come straight from the upstream ``heartbeats`` table:
{
    "id": 123, "user_id": "U123", "project": "site", "language": "Python",
    "time": <timestamp>, "created_at": <timestamp>, "lines": 120, ...
}

Summary payloads come from the summary API:
{
    "projects":  [{"key": "site", "total": 3650}, ...],
    "languages": [{"key": "Python", "total": 3000}, ...]
}
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from spyglass.time_utils import as_utc

MIN_VALID_YEAR = 2000
MAX_VALID_YEAR = 2100

# Epoch values above this are milliseconds, not seconds.
_MILLISECOND_THRESHOLD = 1e11


def parse_timestamp(value: Any) -> datetime:  # noqa: ANN401
    """Parse a heartbeat timestamp into an aware UTC datetime.

    Accepts datetimes, epoch seconds or milliseconds (int, float or numeric
    string) and ISO-8601 strings. The result must fall within
    MIN_VALID_YEAR..MAX_VALID_YEAR.
    """
    if isinstance(value, datetime):
        parsed = as_utc(value)
    elif isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        parsed = _from_epoch(float(value))
    elif isinstance(value, str):
        text = value.strip()
        try:
            parsed = _from_epoch(float(text))
        except ValueError:
            try:
                parsed = as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
            except ValueError:
                raise ValueError(f"Invalid timestamp: {value!r}") from None
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if not MIN_VALID_YEAR <= parsed.year <= MAX_VALID_YEAR:
        raise ValueError(f"Timestamp out of range: {parsed.isoformat()} from {value!r}")
    return parsed


def _from_epoch(seconds: float) -> datetime:
    if not math.isfinite(seconds):
        raise ValueError(f"Invalid timestamp: {seconds!r}")
    if abs(seconds) > _MILLISECOND_THRESHOLD:
        seconds = seconds / 1000
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValueError(f"Invalid timestamp: {seconds!r}") from None


def _parse_optional_int(value: Any) -> int | None:  # noqa: ANN401
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Invalid integer: {value!r}")
        return int(value)
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        raise ValueError(f"Invalid integer: {value!r}") from None
    if not math.isfinite(number):
        raise ValueError(f"Invalid integer: {value!r}")
    return int(number)


class HeartbeatRecord(BaseModel):
    """One upstream heartbeat, normalized for local storage."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    entity: str | None = None
    type: str | None = None
    category: str | None = None
    project: str | None = None
    branch: str | None = None
    language: str | None = None
    is_write: bool = False
    editor: str | None = None
    operating_system: str | None = None
    machine: str | None = None
    user_agent: str | None = None
    time: datetime
    hash: str | None = None
    origin: str | None = None
    origin_id: str | None = None
    created_at: datetime
    project_root_count: int | None = None
    line_additions: int | None = None
    line_deletions: int | None = None
    lines: int | None = None
    line_number: int | None = None
    cursor_position: int | None = None
    dependencies: str | None = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, v: Any) -> str:  # noqa: ANN401
        if v is None or v == "":
            raise ValueError("identifier is required")
        return str(v)

    @field_validator("origin_id", mode="before")
    @classmethod
    def _coerce_optional_str(cls, v: Any) -> str | None:  # noqa: ANN401
        return None if v is None else str(v)

    @field_validator("is_write", mode="before")
    @classmethod
    def _coerce_is_write(cls, v: Any) -> bool:  # noqa: ANN401
        return bool(v) if v is not None else False

    @field_validator("time", "created_at", mode="before")
    @classmethod
    def _parse_time(cls, v: Any) -> datetime:  # noqa: ANN401
        return parse_timestamp(v)

    @field_validator(
        "project_root_count",
        "line_additions",
        "line_deletions",
        "lines",
        "line_number",
        "cursor_position",
        mode="before",
    )
    @classmethod
    def _parse_counts(cls, v: Any) -> int | None:  # noqa: ANN401
        return _parse_optional_int(v)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _join_dependencies(cls, v: Any) -> str | None:  # noqa: ANN401
        if v is None:
            return None
        if isinstance(v, (list, tuple)):
            return ",".join(str(d) for d in v)
        return str(v)


class SummaryEntry(BaseModel):
    """Cumulative seconds for a single project or language key."""

    model_config = ConfigDict(extra="ignore")

    key: str
    total: int = 0

    @field_validator("total", mode="before")
    @classmethod
    def _floor_total(cls, v: Any) -> int:  # noqa: ANN401
        if v is None:
            return 0
        return int(float(v))


class ActivitySummary(BaseModel):
    """A user's all-time totals as returned by the summary API."""

    model_config = ConfigDict(extra="ignore")

    projects: list[SummaryEntry] = Field(default_factory=list)
    languages: list[SummaryEntry] = Field(default_factory=list)

    _raw: dict[str, list[Any]] = PrivateAttr(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> ActivitySummary:  # noqa: ANN401
        """Validate an API body, keeping its project and language arrays as received."""
        summary = cls.model_validate(payload)
        summary._raw = {
            "projects": payload.get("projects") or [],
            "languages": payload.get("languages") or [],
        }
        return summary

    def snapshot_data(self) -> dict[str, Any]:
        """Document stored in ``user_summaries``."""
        return self._raw or self.model_dump()

    @field_validator("projects", "languages", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:  # noqa: ANN401
        return [] if v is None else v

    @property
    def total_seconds(self) -> int:
        """Sum of cumulative seconds across all projects."""
        return sum(p.total for p in self.projects)

    def project_totals(self) -> dict[str, int]:
        return {p.key: p.total for p in self.projects}

    def language_totals(self) -> dict[str, int]:
        return {lang.key: lang.total for lang in self.languages}


class MilestoneEvent(BaseModel):
    """A (user, project) pair crossed one or more notification periods."""

    user_id: str
    project: str
    periods: int
    elapsed_seconds: int
    total_seconds: int
