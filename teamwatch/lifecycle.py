"""In-memory team lifecycle bookkeeping.

Records when each team was first observed and when it last changed.  The
table is fed only by watcher events: teams that already existed when the
process started get a record on their next change, not at startup.  It
is advisory state for logging and health output; whether a team exists
is always decided by reading disk.
"""

from dataclasses import dataclass
from datetime import datetime

from teamwatch.fmt import utcnow


@dataclass
class LifecycleRecord:
    created: datetime
    last_seen: datetime

    def age_minutes(self, now: datetime | None = None) -> float:
        return ((now or utcnow()) - self.created).total_seconds() / 60

    def to_dict(self) -> dict:
        return {"created": self.created.isoformat(), "lastSeen": self.last_seen.isoformat()}


class LifecycleTracker:
    """Mapping of team name to :class:`LifecycleRecord`."""

    def __init__(self) -> None:
        self._records: dict[str, LifecycleRecord] = {}

    def observe(self, team: str, now: datetime | None = None) -> bool:
        """Record that *team*'s config appeared.

        Inserts a fresh record (returns True) or, if one exists, only
        refreshes ``last_seen`` (returns False).
        """
        now = now or utcnow()
        record = self._records.get(team)
        if record is None:
            self._records[team] = LifecycleRecord(created=now, last_seen=now)
            return True
        record.last_seen = now
        return False

    def touch(self, team: str, now: datetime | None = None) -> None:
        """Refresh ``last_seen`` if *team* has a record; no-op otherwise."""
        record = self._records.get(team)
        if record is not None:
            record.last_seen = now or utcnow()

    def remove(self, team: str) -> LifecycleRecord | None:
        return self._records.pop(team, None)

    def get(self, team: str) -> LifecycleRecord | None:
        return self._records.get(team)

    def __contains__(self, team: object) -> bool:
        return team in self._records

    def __len__(self) -> int:
        return len(self._records)

    def as_dict(self) -> dict[str, dict]:
        return {name: r.to_dict() for name, r in sorted(self._records.items())}
