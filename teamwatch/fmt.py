"""Timestamp conversion and terminal output helpers."""

import math
from datetime import datetime, timezone

import click

from teamwatch import __version__


def get_version() -> str:
    return __version__


def success(msg: str) -> None:
    click.echo(click.style("✓ ", fg="green") + msg)


def warn(msg: str) -> None:
    click.echo(click.style("! ", fg="yellow") + msg, err=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_from_epoch(seconds: float) -> str:
    """Render a POSIX timestamp as an ISO-8601 UTC string."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


def js_iso(when: datetime) -> str:
    """Render *when* like JavaScript's ``Date.toISOString()``.

    Always UTC, millisecond precision, ``Z`` suffix:
    ``2025-01-15T10:30:45.123Z``.
    """
    when = when.astimezone(timezone.utc)
    return when.strftime("%Y-%m-%dT%H:%M:%S.") + f"{when.microsecond // 1000:03d}Z"


def to_epoch_ms(value: object) -> float | None:
    """Coerce a JSON timestamp into epoch milliseconds.

    Accepts numbers (already epoch ms) and ISO-8601 strings.  Returns
    ``None`` for anything else, including booleans and non-finite numbers.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            ms = float(value)
        except OverflowError:
            return None
        return ms if math.isfinite(ms) else None
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp() * 1000
    return None
