"""Filesystem change watcher for the teams, tasks and outputs trees.

Raw watchdog events arrive on observer threads and are handed to the
event loop with ``call_soon_threadsafe``.  On the loop they are filtered
(suffix, depth), debounced and classified into :class:`ChangeEvent`
objects that are put on the engine's queue.

Debounce rules per path:

* ``add``/``change`` wait for ``settle_delay`` seconds of quiet; a newer
  event restarts the timer.  ``add`` followed by ``change`` stays ``add``.
* ``unlink`` is emitted at once and cancels a pending settle.  If that
  pending event was an ``add`` the file never settled, so neither is
  emitted.

Missing roots are created at start.  A root deleted or moved away while
running marks its tree inactive and is logged; it is not re-scheduled.

:meth:`ChangeWatcher.notify` is the same entry point the watchdog
handlers use, so tests can drive the watcher without touching disk.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from teamwatch.config import Settings
from teamwatch.logging_setup import caller

logger = logging.getLogger(__name__)

TEAMS = "teams"
TASKS = "tasks"
OUTPUTS = "outputs"

ADD = "add"
CHANGE = "change"
UNLINK = "unlink"

SUFFIXES = {TEAMS: ".json", TASKS: ".json", OUTPUTS: ".output"}


@dataclass(frozen=True)
class ChangeEvent:
    tree: str
    kind: str
    path: Path
    team: str | None = None
    is_config: bool = False


def classify(tree: str, root: Path, path: Path, kind: str) -> ChangeEvent:
    """Attach the owning team (if any) to a raw path event."""
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        parts = ()
    team = None
    is_config = False
    if tree in (TEAMS, TASKS) and len(parts) >= 2:
        team = parts[0]
        is_config = tree == TEAMS and len(parts) == 2 and parts[1] == "config.json"
    return ChangeEvent(tree=tree, kind=kind, path=path, team=team, is_config=is_config)


@dataclass
class _Pending:
    kind: str
    handle: asyncio.TimerHandle


class _TreeHandler(FileSystemEventHandler):
    """Forward watchdog events for one tree to the watcher on the loop thread."""

    def __init__(self, watcher: "ChangeWatcher", tree: str):
        self.watcher = watcher
        self.tree = tree
        self.root = os.path.abspath(watcher.roots[tree])

    def _is_root(self, raw_path) -> bool:
        return os.path.abspath(os.fsdecode(raw_path)) == self.root

    def _forward(self, kind: str, raw_path) -> None:
        with caller(f"watcher:{self.tree}"):
            try:
                self.watcher.notify_threadsafe(self.tree, kind, Path(os.fsdecode(raw_path)))
            except Exception:
                logger.exception("[%s] Watcher error while forwarding %s", self.tree.upper(), kind)

    def _root_lost(self) -> None:
        with caller(f"watcher:{self.tree}"):
            self.watcher.root_lost_threadsafe(self.tree)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(ADD, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(CHANGE, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(UNLINK, event.src_path)
        elif self._is_root(event.src_path):
            self._root_lost()

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(UNLINK, event.src_path)
            self._forward(ADD, event.dest_path)
        elif self._is_root(event.src_path):
            self._root_lost()


class ChangeWatcher:
    """Watch the three trees and emit settled :class:`ChangeEvent`s onto *queue*."""

    def __init__(self, settings: Settings, queue: asyncio.Queue):
        self.settings = settings
        self.policy = settings.watch
        self.queue = queue
        self.roots = {
            TEAMS: settings.teams_root,
            TASKS: settings.tasks_root,
            OUTPUTS: settings.outputs_root,
        }
        self.watching: dict[str, bool] = {tree: False for tree in self.roots}
        self._pending: dict[tuple[str, Path], _Pending] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer = None

    # --- lifecycle ---

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Create missing tree roots and schedule a watchdog handler on each.

        A tree whose root cannot be created or watched is logged and
        skipped; the others keep working.
        """
        self._loop = loop or asyncio.get_running_loop()
        if self.policy.use_polling:
            self._observer = PollingObserver(timeout=self.policy.poll_interval)
        else:
            self._observer = Observer(timeout=self.policy.poll_interval)

        for tree, root in self.roots.items():
            try:
                if not root.is_dir():
                    root.mkdir(parents=True, exist_ok=True)
                    logger.info("[%s] Created missing root %s", tree.upper(), root)
                self._observer.schedule(_TreeHandler(self, tree), str(root), recursive=True)
            except OSError as e:
                logger.error("[%s] Watcher error for %s: %s", tree.upper(), root, e)
                continue
            self.watching[tree] = True
            logger.info("[%s] Watching %s (depth %d)", tree.upper(), root, self.policy.max_depth)

        try:
            self._observer.start()
        except Exception:
            logger.exception("Failed to start file observer; live updates disabled")
            self.watching = {tree: False for tree in self.roots}
            self._observer = None

    def stop(self) -> None:
        for pending in self._pending.values():
            pending.handle.cancel()
        self._pending.clear()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("File watchers closed")

    # --- event intake ---

    def notify_threadsafe(self, tree: str, kind: str, path: Path) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.notify, tree, kind, path)

    def root_lost_threadsafe(self, tree: str) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.root_lost, tree)

    def root_lost(self, tree: str) -> None:
        """Mark *tree* as no longer watched after its root was removed.

        watchdog stops emitting for a schedule whose root disappears, so
        the tree stays dark until the process restarts.
        """
        self.watching[tree] = False
        logger.error(
            "[%s] Watched root %s was removed; live updates for this tree stopped",
            tree.upper(), self.roots[tree],
        )

    def accepts(self, tree: str, path: Path) -> bool:
        root = self.roots.get(tree)
        if root is None or path.suffix != SUFFIXES[tree]:
            return False
        try:
            rel = path.relative_to(root)
        except ValueError:
            return False
        return len(rel.parts) - 1 <= self.policy.max_depth

    def notify(self, tree: str, kind: str, path: Path) -> None:
        """Record that *kind* happened to *path*; must run on the loop thread."""
        if not self.accepts(tree, path):
            return
        key = (tree, path)
        pending = self._pending.pop(key, None)
        if pending is not None:
            pending.handle.cancel()

        if kind == UNLINK:
            if pending is not None and pending.kind == ADD:
                logger.debug("[%s] %s added and removed before settling", tree.upper(), path)
                return
            self._emit(tree, UNLINK, path)
            return

        if pending is not None and pending.kind == ADD:
            kind = ADD
        if self.policy.settle_delay <= 0:
            self._emit(tree, kind, path)
            return
        loop = self._loop or asyncio.get_running_loop()
        handle = loop.call_later(self.policy.settle_delay, self._settle, key)
        self._pending[key] = _Pending(kind=kind, handle=handle)

    def _settle(self, key: tuple[str, Path]) -> None:
        pending = self._pending.pop(key, None)
        if pending is not None:
            self._emit(key[0], pending.kind, key[1])

    def _emit(self, tree: str, kind: str, path: Path) -> None:
        event = classify(tree, self.roots[tree], path, kind)
        logger.info("[%s] File %s: %s", tree.upper(), kind, path)
        self.queue.put_nowait(event)

    @property
    def pending_count(self) -> int:
        return len(self._pending)
