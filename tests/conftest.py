"""Shared test fixtures for teamwatch tests."""

import json
from pathlib import Path

import pytest

from teamwatch.config import Settings, WatchPolicy, load_settings, save_settings


SAMPLE_TEAM = "alpha"
SAMPLE_MEMBERS = [
    {"name": "lead", "agentType": "team-lead"},
    {"name": "worker", "agentType": "general-purpose"},
]


@pytest.fixture
def tw_home(tmp_path, monkeypatch):
    """Create an isolated data home with every root directory present.

    Watching is disabled and the settle delay is zero so tests drive the
    engine and watcher directly.  Returns the home path.
    """
    home = tmp_path / "claude"
    settings = Settings(
        home=home,
        teams_root=home / "teams",
        tasks_root=home / "tasks",
        outputs_root=home / "outputs",
        archive_root=home / "archive",
        projects_root=home / "projects",
        watch=WatchPolicy(enabled=False, settle_delay=0),
    )
    for root in (
        settings.teams_root,
        settings.tasks_root,
        settings.outputs_root,
        settings.archive_root,
        settings.projects_root,
    ):
        root.mkdir(parents=True)
    save_settings(settings)
    monkeypatch.setenv("TEAMWATCH_HOME", str(home))
    return home


@pytest.fixture
def settings(tw_home):
    """Settings loaded back from the fixture home."""
    return load_settings(tw_home)


@pytest.fixture
def make_team(settings):
    """Return a helper that writes ``<teams_root>/<name>/config.json``."""

    def _make(name: str = SAMPLE_TEAM, members=None, **extra) -> Path:
        d = settings.teams_root / name
        d.mkdir(parents=True, exist_ok=True)
        config = {
            "name": name,
            "members": SAMPLE_MEMBERS if members is None else members,
            **extra,
        }
        path = d / "config.json"
        path.write_text(json.dumps(config))
        return path

    return _make


@pytest.fixture
def make_task(settings):
    """Return a helper that writes ``<tasks_root>/<team>/<task_id>.json``."""

    def _make(team: str, task_id: str, **fields) -> Path:
        d = settings.tasks_root / team
        d.mkdir(parents=True, exist_ok=True)
        task = {"subject": f"Task {task_id}", "status": "pending", **fields}
        path = d / f"{task_id}.json"
        path.write_text(json.dumps(task))
        return path

    return _make
