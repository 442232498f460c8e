"""Settings stored in ``<home>/teamwatch.yaml``.

Every key is optional::

    roots:
      teams: teams              # relative paths resolve against home
      tasks: tasks
      outputs: /tmp/claude/tasks
      archive: archive
      projects: projects
    watch:
      enabled: true
      use_polling: true
      poll_interval: 1.0
      settle_delay: 0.5
      max_depth: 10
    server:
      host: 127.0.0.1
      port: 3001
    output_tail_lines: 100
"""

import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from teamwatch.paths import config_path, home as _home

DEFAULT_PORT = 3001
DEFAULT_HOST = "127.0.0.1"


@dataclass(frozen=True)
class WatchPolicy:
    """How the change watcher observes the filesystem.

    ``settle_delay`` is the stability threshold: an add/change on a path
    is only emitted once the path has been quiet for that many seconds.
    ``max_depth`` bounds how deep below a watched root events are accepted.
    It filters events only: watchdog still schedules each root recursively,
    so a polling observer snapshots the whole tree on every interval.
    """

    enabled: bool = True
    use_polling: bool = True
    poll_interval: float = 1.0
    settle_delay: float = 0.5
    max_depth: int = 10


@dataclass(frozen=True)
class Settings:
    home: Path
    teams_root: Path
    tasks_root: Path
    outputs_root: Path
    archive_root: Path
    projects_root: Path
    watch: WatchPolicy = field(default_factory=WatchPolicy)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    output_tail_lines: int = 100


def default_outputs_root() -> Path:
    return Path(tempfile.gettempdir()) / "claude" / "tasks"


def _read(tw_home: Path) -> dict:
    """Read teamwatch.yaml, returning empty dict if missing."""
    cp = config_path(tw_home)
    if cp.exists():
        return yaml.safe_load(cp.read_text()) or {}
    return {}


def _write(tw_home: Path, data: dict) -> None:
    cp = config_path(tw_home)
    cp.parent.mkdir(parents=True, exist_ok=True)
    cp.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))


def _root(tw_home: Path, value: str | None, default: Path) -> Path:
    if not value:
        return default
    p = Path(value).expanduser()
    return p if p.is_absolute() else tw_home / p


def load_settings(tw_home: Path | None = None) -> Settings:
    """Build :class:`Settings` from the YAML file under *tw_home*.

    Missing keys fall back to the defaults; a missing file yields the
    defaults entirely.
    """
    tw_home = _home(tw_home)
    data = _read(tw_home)
    roots = data.get("roots") or {}
    watch = data.get("watch") or {}
    server = data.get("server") or {}

    policy = WatchPolicy(
        enabled=bool(watch.get("enabled", True)),
        use_polling=bool(watch.get("use_polling", True)),
        poll_interval=float(watch.get("poll_interval", 1.0)),
        settle_delay=float(watch.get("settle_delay", 0.5)),
        max_depth=int(watch.get("max_depth", 10)),
    )
    return Settings(
        home=tw_home,
        teams_root=_root(tw_home, roots.get("teams"), tw_home / "teams"),
        tasks_root=_root(tw_home, roots.get("tasks"), tw_home / "tasks"),
        outputs_root=_root(tw_home, roots.get("outputs"), default_outputs_root()),
        archive_root=_root(tw_home, roots.get("archive"), tw_home / "archive"),
        projects_root=_root(tw_home, roots.get("projects"), tw_home / "projects"),
        watch=policy,
        host=str(server.get("host", DEFAULT_HOST)),
        port=int(server.get("port", DEFAULT_PORT)),
        output_tail_lines=int(data.get("output_tail_lines", 100)),
    )


def save_settings(settings: Settings) -> None:
    """Persist *settings* to ``<home>/teamwatch.yaml``."""
    data = {
        "roots": {
            "teams": str(settings.teams_root),
            "tasks": str(settings.tasks_root),
            "outputs": str(settings.outputs_root),
            "archive": str(settings.archive_root),
            "projects": str(settings.projects_root),
        },
        "watch": {
            "enabled": settings.watch.enabled,
            "use_polling": settings.watch.use_polling,
            "poll_interval": settings.watch.poll_interval,
            "settle_delay": settings.watch.settle_delay,
            "max_depth": settings.watch.max_depth,
        },
        "server": {"host": settings.host, "port": settings.port},
        "output_tail_lines": settings.output_tail_lines,
    }
    _write(settings.home, data)
