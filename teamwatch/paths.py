"""Centralized path computations for teamwatch.

Every path handed to the filesystem is computed here.  Names that come
from the outside world (team names, agent names, task ids, archive
filenames, project ids) are validated against a whitelist and confined
to their root before any disk access happens.

The ``TEAMWATCH_HOME`` environment variable overrides the default data
home for testing.

Layout::

    ~/.claude/
      teamwatch.yaml              # optional settings
      teamwatch.log
      teams/<team>/
        config.json
        inboxes/<agent>.json
      tasks/<team>/<task_id>.json
      archive/<team>_<timestamp>.json
      projects/<project>/<session_id>.jsonl
    <tmp>/claude/tasks/<task_id>.output
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from teamwatch.config import Settings

_DEFAULT_HOME = Path.home() / ".claude"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_FILENAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class InvalidIdentifier(ValueError):
    """Raised when an externally supplied name fails validation."""


def home(override: Path | None = None) -> Path:
    """Return the teamwatch data home.

    Resolution order:
    1. *override* argument (used in tests)
    2. ``TEAMWATCH_HOME`` environment variable
    3. ``~/.claude``
    """
    if override is not None:
        return override
    env = os.environ.get("TEAMWATCH_HOME")
    if env:
        return Path(env)
    return _DEFAULT_HOME


def config_path(tw_home: Path) -> Path:
    """Settings file: ``<home>/teamwatch.yaml``."""
    return tw_home / "teamwatch.yaml"


def log_file_path(tw_home: Path) -> Path:
    return tw_home / "teamwatch.log"


# =========================================================================
# Validation and confinement
# =========================================================================

def _separators() -> set[str]:
    seps = {"/", "\\", os.sep}
    if os.altsep:
        seps.add(os.altsep)
    return seps


def validate_identifier(value: object, *, allow_dot: bool = False) -> str:
    """Return *value* unchanged if it is a safe single path component.

    Identifiers match ``[A-Za-z0-9_-]+``; with *allow_dot* (filenames)
    ``.`` is also allowed.  Separators, ``..`` and a leading ``.`` are
    always rejected.  No filesystem access happens here.

    Raises:
        InvalidIdentifier: if the value is unsafe.
    """
    if not isinstance(value, str) or not value:
        raise InvalidIdentifier("Identifier must be a non-empty string")
    if any(sep in value for sep in _separators()):
        raise InvalidIdentifier(f"Path separators are not allowed: {value!r}")
    if ".." in value:
        raise InvalidIdentifier(f"'..' is not allowed: {value!r}")
    if value.startswith("."):
        raise InvalidIdentifier(f"Leading '.' is not allowed: {value!r}")
    pattern = _FILENAME_RE if allow_dot else _IDENTIFIER_RE
    if not pattern.match(value):
        raise InvalidIdentifier(f"Invalid identifier format: {value!r}")
    return value


def resolve_within(root: Path, name: str, *, allow_dot: bool = False) -> Path:
    """Validate *name* and return ``root / name``, guaranteed inside *root*.

    The basename is re-derived after validation and the joined path is
    checked with ``os.path.relpath`` against *root*, so the result can
    never escape it even if the whitelist is loosened later.
    """
    validate_identifier(name, allow_dot=allow_dot)
    base = os.path.basename(name)
    root_abs = os.path.abspath(root)
    candidate = os.path.abspath(os.path.join(root_abs, base))
    rel = os.path.relpath(candidate, root_abs)
    if rel == "." or rel.startswith("..") or os.path.isabs(rel):
        raise InvalidIdentifier(f"Path escapes its root: {name!r}")
    return Path(candidate)


# =========================================================================
# Entity paths
# =========================================================================

def team_dir(settings: Settings, team: str) -> Path:
    """Team directory: ``<teams_root>/<team>/``."""
    return resolve_within(settings.teams_root, team)


def team_config_path(settings: Settings, team: str) -> Path:
    return team_dir(settings, team) / "config.json"


def inbox_dir(settings: Settings, team: str) -> Path:
    return team_dir(settings, team) / "inboxes"


def inbox_path(settings: Settings, team: str, agent: str) -> Path:
    """Agent inbox: ``<teams_root>/<team>/inboxes/<agent>.json``."""
    return resolve_within(inbox_dir(settings, team), agent).with_suffix(".json")


def task_dir(settings: Settings, team: str) -> Path:
    """Team task directory: ``<tasks_root>/<team>/``."""
    return resolve_within(settings.tasks_root, team)


def output_path(settings: Settings, task_id: str) -> Path:
    """Agent output log: ``<outputs_root>/<task_id>.output``."""
    return resolve_within(settings.outputs_root, task_id).with_suffix(".output")


def archive_path(settings: Settings, filename: str) -> Path:
    """Archive record by exact filename (dots allowed)."""
    return resolve_within(settings.archive_root, filename, allow_dot=True)


def project_dir(settings: Settings, project: str) -> Path:
    return resolve_within(settings.projects_root, project)
