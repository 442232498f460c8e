"""Sync engine — turns filesystem change events into broadcasts.

The engine owns all mutable runtime state (observer hub, lifecycle table,
last-known team snapshots, event queue) so each instance is isolated;
tests build their own engine and drive :meth:`SyncEngine.handle`
directly.

Every event triggers a full re-read of the current state rather than a
diff.  Events may arrive partial, duplicated or out of order; re-deriving
everything from disk makes the result converge regardless.

Event handling:

    outputs/*.output             → agent_outputs_update
    teams/<t>/config.json add    → lifecycle insert, teams_update
    teams/<t>/config.json unlink → archive last snapshot, lifecycle delete,
                                   teams_update
    other teams/ or tasks/ file  → lifecycle touch, teams_update / task_update
"""

import asyncio
import contextlib
import logging

from teamwatch.archive import ArchiveError, archive_team
from teamwatch.config import Settings
from teamwatch.hub import BroadcastHub
from teamwatch.lifecycle import LifecycleTracker
from teamwatch.logging_setup import log_caller
from teamwatch.paths import InvalidIdentifier, team_config_path
from teamwatch.snapshot import get_active_teams, get_agent_outputs, get_team_history
from teamwatch.stats import calculate_team_stats
from teamwatch.watcher import ADD, OUTPUTS, TASKS, UNLINK, ChangeEvent, ChangeWatcher

logger = logging.getLogger(__name__)


class SyncEngine:
    def __init__(
        self,
        settings: Settings,
        hub: BroadcastHub | None = None,
        lifecycle: LifecycleTracker | None = None,
    ):
        self.settings = settings
        self.hub = hub or BroadcastHub()
        self.lifecycle = lifecycle or LifecycleTracker()
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self.watcher = ChangeWatcher(settings, self.queue)
        self._last_known: dict[str, dict] = {}
        self._task: asyncio.Task | None = None

    # --- snapshots ---

    async def resync(self) -> tuple[list[dict], dict]:
        """Re-read every active team; remember each as its last-known snapshot.

        Entries are never pruned here: a team missing from this read may
        still have its config unlink queued, and that event needs the
        snapshot.  An entry is dropped only when its config unlink is
        handled, so teams that vanish without one (a config that turned
        corrupt, an add and unlink that never settled) keep their last
        snapshot for the life of the process.
        """
        teams = await get_active_teams(self.settings)
        for team in teams:
            self._last_known[team["name"]] = team
        return teams, calculate_team_stats(teams)

    def last_known(self, team: str) -> dict | None:
        return self._last_known.get(team)

    async def initial_payload(self) -> dict:
        teams, stats = await self.resync()
        history, outputs = await asyncio.gather(
            get_team_history(self.settings),
            get_agent_outputs(self.settings),
        )
        return {
            "type": "initial_data",
            "data": teams,
            "stats": stats,
            "teamHistory": history,
            "agentOutputs": outputs,
        }

    async def connect(self, conn) -> bool:
        """Register an observer and push it the full current state."""
        self.hub.add(conn)
        try:
            payload = await self.initial_payload()
        except Exception:
            logger.exception("Error building initial data")
            self.hub.discard(conn)
            return False
        return await self.hub.send(conn, payload)

    # --- event handling ---

    async def handle(self, event: ChangeEvent) -> None:
        """Apply one change event and broadcast the resulting state."""
        if event.tree == OUTPUTS:
            outputs = await get_agent_outputs(self.settings)
            await self.hub.broadcast({"type": "agent_outputs_update", "outputs": outputs})
            return

        try:
            if event.team is not None:
                if event.is_config and event.kind == ADD:
                    if self.lifecycle.observe(event.team):
                        logger.info("Team '%s' created", event.team)
                elif event.is_config and event.kind == UNLINK:
                    await self._team_removed(event.team)
                else:
                    self.lifecycle.touch(event.team)
        finally:
            teams, stats = await self.resync()
            kind = "task_update" if event.tree == TASKS else "teams_update"
            await self.hub.broadcast({"type": kind, "data": teams, "stats": stats})

    async def _team_removed(self, team: str) -> None:
        try:
            config = team_config_path(self.settings, team)
        except InvalidIdentifier as e:
            logger.warning("Ignoring removal of team with unsafe name %r: %s", team, e)
            return

        try:
            if await asyncio.to_thread(config.exists):
                logger.info("Config for team '%s' was replaced, not archiving", team)
                return
            snapshot = self._last_known.pop(team, None)
            if snapshot is None:
                logger.warning("No snapshot of team '%s' was ever read; skipping archive", team)
                return
            try:
                await asyncio.to_thread(archive_team, self.settings, snapshot)
            except ArchiveError as e:
                logger.error("Error archiving team '%s': %s", team, e)
        finally:
            # The team counts as deleted whether or not the archive was written.
            record = self.lifecycle.remove(team)
            if record is not None:
                logger.info("Team '%s' removed after %.0f minutes", team, record.age_minutes())
            else:
                logger.info("Team '%s' removed", team)

    # --- consumer loop ---

    async def run(self) -> None:
        """Consume change events forever, one at a time."""
        log_caller.set("engine")
        while True:
            event = await self.queue.get()
            try:
                await self.handle(event)
            except Exception:
                logger.exception("Error handling %s event for %s", event.kind, event.path)
            finally:
                self.queue.task_done()

    async def start(self) -> None:
        if self._task is not None:
            return
        # Seed last-known snapshots so teams that existed before startup
        # can still be archived; the lifecycle table is left empty.
        teams, _ = await self.resync()
        logger.info("Found %d active team(s) at startup", len(teams))
        if self.settings.watch.enabled:
            self.watcher.start(asyncio.get_running_loop())
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        self.watcher.stop()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
