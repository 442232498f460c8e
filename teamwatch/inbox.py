"""Inbox parsing for agent messages.

Inbox files live at ``<teams_root>/<team>/inboxes/<agent>.json`` and come
in two shapes written by different agent versions::

    [ {message}, ... ]                  # bare array
    { "messages": [ {message}, ... ] }  # wrapped

Both are resolved here into a single :class:`Inbox`; nothing downstream
looks at the raw shape.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from teamwatch.config import Settings
from teamwatch.paths import InvalidIdentifier, inbox_dir, inbox_path, validate_identifier

logger = logging.getLogger(__name__)


@dataclass
class Inbox:
    agent: str
    messages: list[dict] = field(default_factory=list)

    @property
    def unread_count(self) -> int:
        return sum(1 for m in self.messages if m.get("read") is False)

    def to_dict(self) -> dict:
        return {
            "messages": self.messages,
            "messageCount": len(self.messages),
            "unreadCount": self.unread_count,
        }


def parse_inbox(agent: str, raw: object) -> Inbox:
    """Resolve either on-disk inbox shape into an :class:`Inbox`.

    Non-object entries inside the message list are dropped.

    Raises:
        ValueError: if *raw* is neither a list nor an object with a
            ``messages`` list.
    """
    if isinstance(raw, list):
        items = raw
    elif isinstance(raw, dict) and isinstance(raw.get("messages"), list):
        items = raw["messages"]
    else:
        raise ValueError(f"Unrecognized inbox shape for agent '{agent}'")
    return Inbox(agent=agent, messages=[m for m in items if isinstance(m, dict)])


def _load(path: Path) -> Inbox:
    return parse_inbox(path.stem, json.loads(path.read_text()))


def read_agent_inbox(settings: Settings, team: str, agent: str) -> Inbox | None:
    """Return one agent's inbox, or None if it is missing or unreadable.

    Raises:
        InvalidIdentifier: if *team* or *agent* is not a safe identifier.
    """
    path = inbox_path(settings, team, agent)
    if not path.is_file():
        return None
    try:
        return _load(path)
    except (OSError, ValueError) as e:
        logger.warning("Skipping inbox %s: %s", path, e)
        return None


def read_team_inboxes(settings: Settings, team: str) -> dict[str, Inbox]:
    """Return every readable inbox of *team*, keyed by agent name.

    A missing inboxes directory yields an empty dict; a corrupt file is
    skipped and logged.
    """
    d = inbox_dir(settings, team)
    if not d.is_dir():
        return {}
    inboxes: dict[str, Inbox] = {}
    for f in sorted(d.glob("*.json")):
        try:
            validate_identifier(f.stem)
            inboxes[f.stem] = _load(f)
        except InvalidIdentifier:
            logger.debug("Ignoring inbox file with unsafe name: %s", f.name)
        except (OSError, ValueError) as e:
            logger.warning("Skipping inbox %s: %s", f, e)
    return inboxes
