"""Team archival — durable records of teams that were deleted.

When a team's config disappears, the sync engine hands the last snapshot
it read to :func:`archive_team`, which writes::

    <archive_root>/<team>_<YYYY-MM-DDTHH-MM-SS.mmmZ>.json

containing ``{teamName, archivedAt, summary, rawData}``.  Records are
created with exclusive-create mode and never modified or removed here.

Functions:
    generate_team_summary(team) — natural-language summary of a snapshot
    archive_team(settings, team) — write one archive record
    list_archives(settings) — all records, newest first
    read_archive(settings, filename) — one record by exact filename
"""

import json
import logging
import math
from datetime import datetime
from pathlib import Path

from teamwatch.config import Settings
from teamwatch.fmt import js_iso, to_epoch_ms, utcnow
from teamwatch.paths import InvalidIdentifier, archive_path, resolve_within, validate_identifier
from teamwatch.stats import team_members, team_tasks

logger = logging.getLogger(__name__)

MAX_ACCOMPLISHMENTS = 10


class ArchiveError(Exception):
    """Raised when an archive record cannot be written."""


def _member_label(member: dict) -> str:
    role = member.get("agentType") or member.get("role")
    return f"{member.get('name')} ({role})"


def _created_fields(created_at: object, now: datetime) -> tuple[str, str]:
    """Return ``(created, duration)`` for a raw ``createdAt`` value.

    Values that cannot be placed on the calendar (out of range for the
    platform, non-finite) give the same fallbacks as a missing value.
    """
    created_ms = to_epoch_ms(created_at)
    if created_ms is None:
        return "Unknown", "Unknown duration"
    try:
        created = datetime.fromtimestamp(created_ms / 1000).strftime("%x")
        minutes = (now.timestamp() * 1000 - created_ms) / 60000
        duration = f"Active for {math.floor(minutes + 0.5)} minutes"
    except (OverflowError, ValueError, OSError) as e:
        logger.debug("Unusable createdAt %r: %s", created_at, e)
        return "Unknown", "Unknown duration"
    return created, duration


def generate_team_summary(team: dict, now: datetime | None = None) -> dict:
    """Summarize a team snapshot (``{name, config, tasks}``) in prose.

    The overview always says "members", whatever the count.  Only the
    first 10 completed tasks (in task order) are listed as accomplishments.
    """
    now = now or utcnow()
    config = team.get("config")
    config = config if isinstance(config, dict) else {}
    members = team_members(team)
    tasks = team_tasks(team)
    completed = [t for t in tasks if t.get("status") == "completed"]
    created, duration = _created_fields(config.get("createdAt"), now)

    return {
        "overview": (
            f'Team "{team.get("name")}" with {len(members)} members worked on '
            f"{len(tasks)} tasks and completed {len(completed)}."
        ),
        "created": created,
        "members": [_member_label(m) for m in members if isinstance(m, dict)],
        "accomplishments": [f"✅ {t.get('subject')}" for t in completed][:MAX_ACCOMPLISHMENTS],
        "duration": duration,
    }


def archive_filename(team: str, when: datetime) -> str:
    """``<team>_<ISO timestamp with ':' replaced by '-'>.json``."""
    validate_identifier(team)
    return f"{team}_{js_iso(when).replace(':', '-')}.json"


def archive_team(settings: Settings, team: dict, now: datetime | None = None) -> Path:
    """Write an archive record for *team* and return its path.

    Raises:
        ArchiveError: if the name is invalid, the file already exists,
            the summary cannot be built, or the write fails.
    """
    now = now or utcnow()
    name = team.get("name")
    try:
        filename = archive_filename(name, now)
        path = resolve_within(settings.archive_root, filename, allow_dot=True)
    except InvalidIdentifier as e:
        raise ArchiveError(f"Cannot archive team {name!r}: {e}") from e

    try:
        summary = generate_team_summary(team, now=now)
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        raise ArchiveError(f"Cannot summarize team {name!r}: {e}") from e

    record = {
        "teamName": name,
        "archivedAt": js_iso(now),
        "summary": summary,
        "rawData": team,
    }
    try:
        settings.archive_root.mkdir(parents=True, exist_ok=True)
        with path.open("x", encoding="utf-8") as fh:
            json.dump(record, fh, indent=2, ensure_ascii=False)
    except FileExistsError as e:
        raise ArchiveError(f"Archive {filename} already exists") from e
    except (OSError, TypeError, ValueError) as e:
        raise ArchiveError(f"Failed to write archive {filename}: {e}") from e
    logger.info("Archived team '%s' to %s", name, path.name)
    return path


def _load_record(path: Path) -> dict:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("archive record is not a JSON object")
    return data


def list_archives(settings: Settings) -> list[dict]:
    """Return ``{filename, teamName, archivedAt, summary}`` per record, newest first.

    Corrupt records are skipped and logged.
    """
    root = settings.archive_root
    if not root.is_dir():
        return []
    archives = []
    for f in root.glob("*.json"):
        try:
            data = _load_record(f)
        except (OSError, ValueError) as e:
            logger.warning("Skipping archive %s: %s", f.name, e)
            continue
        archives.append({
            "filename": f.name,
            "teamName": data.get("teamName"),
            "archivedAt": data.get("archivedAt"),
            "summary": data.get("summary"),
        })
    archives.sort(key=lambda a: to_epoch_ms(a["archivedAt"]) or 0, reverse=True)
    return archives


def read_archive(settings: Settings, filename: str) -> dict | None:
    """Return one archive record, or None if it is missing or corrupt.

    Raises:
        InvalidIdentifier: if *filename* is unsafe or not a ``.json`` name.
    """
    path = archive_path(settings, filename)
    if not filename.endswith(".json"):
        raise InvalidIdentifier(f"Archive filenames end in .json: {filename!r}")
    if not path.is_file():
        return None
    try:
        return _load_record(path)
    except (OSError, ValueError) as e:
        logger.warning("Error reading archive %s: %s", filename, e)
        return None
