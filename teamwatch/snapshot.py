"""Snapshot reader — rebuilds team state from the filesystem.

Every function here re-reads disk from scratch; nothing is cached between
calls.  Failures are normalized to an empty/default result and logged, so
callers always get a complete (possibly empty) snapshot and never a
half-built one:

* a team whose config is missing or corrupt is treated as not existing;
* a corrupt task or output file is skipped without affecting its siblings;
* a missing root directory yields an empty list.

Blocking file I/O runs in worker threads via ``asyncio.to_thread`` so the
event loop stays responsive while large trees are read.
"""

import asyncio
import json
import logging
from collections import deque
from pathlib import Path

from teamwatch.config import Settings
from teamwatch.fmt import iso_from_epoch, to_epoch_ms, utcnow
from teamwatch.paths import (
    InvalidIdentifier,
    output_path,
    task_dir,
    team_config_path,
    validate_identifier,
)

logger = logging.getLogger(__name__)


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def _read_json(path: Path):
    # Snapshots must stay encodable as strict JSON: no NaN or Infinity.
    return json.loads(path.read_text(encoding="utf-8"), parse_constant=_reject_constant)


# ---------------------------------------------------------------------------
# Teams and tasks
# ---------------------------------------------------------------------------

async def read_team_config(settings: Settings, name: str) -> dict | None:
    """Parse ``<teams_root>/<name>/config.json``.

    Returns None (never raises) if the name is invalid or the file is
    missing, unreadable, or not a JSON object.
    """
    try:
        path = team_config_path(settings, name)
        data = await asyncio.to_thread(_read_json, path)
    except InvalidIdentifier as e:
        logger.warning("Rejected team name %r: %s", name, e)
        return None
    except FileNotFoundError:
        logger.debug("No config for team '%s'", name)
        return None
    except (OSError, ValueError) as e:
        logger.warning("Error reading team config for %s: %s", name, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Team config for %s is not a JSON object", name)
        return None
    return data


def _task_sort_key(task: dict) -> float:
    return to_epoch_ms(task.get("createdAt")) or 0


async def _read_task(path: Path) -> dict:
    data = await asyncio.to_thread(_read_json, path)
    if not isinstance(data, dict):
        raise ValueError("task is not a JSON object")
    return {**data, "id": path.stem}


async def read_tasks(settings: Settings, name: str) -> list[dict]:
    """Read every ``*.json`` task of a team, oldest first.

    Files are read in parallel.  A file that fails to read or parse is
    logged and dropped; undated tasks sort first.
    """
    try:
        d = task_dir(settings, name)
    except InvalidIdentifier as e:
        logger.warning("Rejected team name %r: %s", name, e)
        return []
    try:
        files = await asyncio.to_thread(lambda: sorted(d.glob("*.json")) if d.is_dir() else [])
    except OSError as e:
        logger.warning("Error listing tasks for %s: %s", name, e)
        return []

    results = await asyncio.gather(*(_read_task(f) for f in files), return_exceptions=True)
    tasks = []
    for f, result in zip(files, results):
        if isinstance(result, BaseException):
            logger.warning("Skipping task file %s: %s", f, result)
            continue
        tasks.append(result)
    tasks.sort(key=_task_sort_key)
    return tasks


async def read_team(settings: Settings, name: str) -> dict | None:
    """Return ``{config, tasks}`` for one team, or None if it does not exist."""
    config = await read_team_config(settings, name)
    if config is None:
        return None
    return {"config": config, "tasks": await read_tasks(settings, name)}


async def list_team_names(settings: Settings) -> list[str]:
    root = settings.teams_root

    def _scan() -> list[str]:
        if not root.is_dir():
            return []
        return sorted(p.name for p in root.iterdir() if p.is_dir())

    try:
        names = await asyncio.to_thread(_scan)
    except OSError as e:
        logger.error("Error reading teams directory %s: %s", root, e)
        return []
    if not names and not root.is_dir():
        logger.info("Teams directory %s does not exist yet", root)
    return names


async def _load_team(settings: Settings, name: str) -> dict | None:
    config = await read_team_config(settings, name)
    if config is None:
        return None
    tasks = await read_tasks(settings, name)
    return {
        "name": name,
        "config": config,
        "tasks": tasks,
        "lastUpdated": utcnow().isoformat(),
    }


async def get_active_teams(settings: Settings) -> list[dict]:
    """Return every team under the teams root whose config parses."""
    names = await list_team_names(settings)
    teams = await asyncio.gather(*(_load_team(settings, n) for n in names))
    return [t for t in teams if t is not None]


def _birth_time(st) -> float:
    # st_birthtime only exists on macOS/BSD; ctime is the closest on Linux
    return getattr(st, "st_birthtime", st.st_ctime)


async def get_team_history(settings: Settings) -> list[dict]:
    """Like :func:`get_active_teams`, with file times, newest first."""
    teams = await get_active_teams(settings)
    history = []
    for team in teams:
        try:
            st = await asyncio.to_thread(team_config_path(settings, team["name"]).stat)
        except OSError as e:
            logger.debug("Team '%s' vanished while reading history: %s", team["name"], e)
            continue
        history.append((st.st_mtime, {
            **team,
            "createdAt": iso_from_epoch(_birth_time(st)),
            "lastModified": iso_from_epoch(st.st_mtime),
            "isActive": True,
        }))
    history.sort(key=lambda pair: pair[0], reverse=True)
    return [entry for _, entry in history]


# ---------------------------------------------------------------------------
# Agent outputs
# ---------------------------------------------------------------------------

def _read_output(path: Path, tail_lines: int) -> tuple[float, dict]:
    st = path.stat()
    with path.open(encoding="utf-8", errors="replace") as fh:
        lines = deque((line.rstrip("\n") for line in fh), maxlen=tail_lines)
    return st.st_mtime, {
        "taskId": path.stem,
        "fileName": path.name,
        "content": "\n".join(lines),
        "lineCount": len(lines),
        "size": st.st_size,
        "lastModified": iso_from_epoch(st.st_mtime),
    }


async def get_agent_outputs(settings: Settings) -> list[dict]:
    """Return the tail of every ``*.output`` log, most recently modified first."""
    root = settings.outputs_root
    try:
        files = await asyncio.to_thread(lambda: sorted(root.glob("*.output")) if root.is_dir() else [])
    except OSError as e:
        logger.warning("Error listing agent outputs in %s: %s", root, e)
        return []

    results = await asyncio.gather(
        *(asyncio.to_thread(_read_output, f, settings.output_tail_lines) for f in files),
        return_exceptions=True,
    )
    outputs = []
    for f, result in zip(files, results):
        if isinstance(result, BaseException):
            logger.warning("Skipping output file %s: %s", f, result)
            continue
        outputs.append(result)
    outputs.sort(key=lambda pair: pair[0], reverse=True)
    return [entry for _, entry in outputs]


async def get_agent_output(settings: Settings, task_id: str) -> dict | None:
    """Return one output log by task id, or None if it does not exist.

    Raises:
        InvalidIdentifier: if *task_id* is not a safe identifier.
    """
    validate_identifier(task_id)
    path = output_path(settings, task_id)
    try:
        _, entry = await asyncio.to_thread(_read_output, path, settings.output_tail_lines)
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Error reading output %s: %s", path, e)
        return None
    return entry
