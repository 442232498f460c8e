"""Project session summaries.

Each project directory under the projects root holds one ``*.jsonl``
transcript per session.  Lines are JSON records with (at least) a
``type`` and usually a ``timestamp``; ``summary`` records carry a
human-readable title.  Unparseable lines are skipped.
"""

import asyncio
import json
import logging
from pathlib import Path

from teamwatch.config import Settings
from teamwatch.fmt import iso_from_epoch
from teamwatch.paths import InvalidIdentifier, project_dir, validate_identifier

logger = logging.getLogger(__name__)

MESSAGE_TYPES = {"user", "assistant"}


def summarize_session(path: Path, project: str) -> dict:
    message_count = 0
    first_ts: str | None = None
    last_ts: str | None = None
    title: str | None = None
    skipped = 0

    with path.open(encoding="utf-8", errors="replace") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except ValueError:
                skipped += 1
                continue
            if not isinstance(record, dict):
                continue
            kind = record.get("type")
            if kind in MESSAGE_TYPES:
                message_count += 1
            elif kind == "summary" and title is None:
                title = record.get("summary")
            ts = record.get("timestamp")
            if isinstance(ts, str):
                first_ts = first_ts or ts
                last_ts = ts

    if skipped:
        logger.debug("Skipped %d malformed line(s) in %s", skipped, path)
    st = path.stat()
    return {
        "sessionId": path.stem,
        "project": project,
        "messageCount": message_count,
        "firstTimestamp": first_ts,
        "lastTimestamp": last_ts,
        "title": title,
        "size": st.st_size,
        "lastModified": iso_from_epoch(st.st_mtime),
    }


def _project_sessions(settings: Settings, project: str) -> list[dict]:
    d = project_dir(settings, project)
    if not d.is_dir():
        return []
    sessions = []
    for f in d.glob("*.jsonl"):
        try:
            sessions.append(summarize_session(f, project))
        except OSError as e:
            logger.warning("Skipping session file %s: %s", f, e)
    sessions.sort(key=lambda s: s["lastModified"], reverse=True)
    return sessions


async def list_project_sessions(settings: Settings, project: str) -> list[dict] | None:
    """Return session summaries for one project, newest first.

    Returns None if the project directory does not exist.

    Raises:
        InvalidIdentifier: if *project* is not a safe identifier.
    """
    validate_identifier(project)
    if not await asyncio.to_thread(project_dir(settings, project).is_dir):
        return None
    return await asyncio.to_thread(_project_sessions, settings, project)


async def list_projects(settings: Settings) -> list[dict]:
    """Return ``[{project, sessions}]`` for every project directory."""
    root = settings.projects_root

    def _scan() -> list[dict]:
        if not root.is_dir():
            return []
        projects = []
        for d in sorted(root.iterdir()):
            if not d.is_dir():
                continue
            try:
                sessions = _project_sessions(settings, d.name)
            except InvalidIdentifier:
                logger.debug("Ignoring project dir with unsafe name: %s", d.name)
                continue
            projects.append({"project": d.name, "sessions": sessions})
        return projects

    try:
        return await asyncio.to_thread(_scan)
    except OSError as e:
        logger.warning("Error reading projects directory %s: %s", root, e)
        return []
