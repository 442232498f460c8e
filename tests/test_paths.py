"""Unit tests for teamwatch.paths — identifier validation and confinement."""

from pathlib import Path

import pytest

from teamwatch.paths import (
    InvalidIdentifier,
    archive_path,
    config_path,
    home,
    inbox_path,
    log_file_path,
    output_path,
    resolve_within,
    task_dir,
    team_config_path,
    validate_identifier,
)


class TestValidateIdentifier:
    @pytest.mark.parametrize("value", ["alpha", "team-1", "my_team", "A1", "x"])
    def test_accepts_safe_names(self, value):
        assert validate_identifier(value) == value

    @pytest.mark.parametrize("value", [
        "../etc",
        "..",
        "a/b",
        "a\\b",
        "/abs",
        ".hidden",
        "team name",
        "team$",
        "bad.name",
        "",
    ])
    def test_rejects_unsafe_names(self, value):
        with pytest.raises(InvalidIdentifier):
            validate_identifier(value)

    @pytest.mark.parametrize("value", [None, 42, ["alpha"]])
    def test_rejects_non_strings(self, value):
        with pytest.raises(InvalidIdentifier):
            validate_identifier(value)

    def test_dot_allowed_only_for_filenames(self):
        assert validate_identifier("alpha_2025.json", allow_dot=True) == "alpha_2025.json"
        with pytest.raises(InvalidIdentifier):
            validate_identifier("alpha_2025.json")

    @pytest.mark.parametrize("value", ["..json", "a..b.json", ".json"])
    def test_filenames_still_reject_traversal(self, value):
        with pytest.raises(InvalidIdentifier):
            validate_identifier(value, allow_dot=True)

    def test_invalid_identifier_is_a_value_error(self):
        assert issubclass(InvalidIdentifier, ValueError)


class TestResolveWithin:
    def test_stays_under_root(self, tmp_path):
        p = resolve_within(tmp_path, "alpha")
        assert p == tmp_path / "alpha"
        assert p.parent == tmp_path

    def test_traversal_never_escapes(self, tmp_path):
        with pytest.raises(InvalidIdentifier):
            resolve_within(tmp_path, "../../etc/passwd")

    def test_no_filesystem_access_needed(self, tmp_path):
        missing = tmp_path / "does-not-exist"
        assert resolve_within(missing, "alpha") == missing / "alpha"


class TestHome:
    def test_override_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEAMWATCH_HOME", str(tmp_path / "env"))
        assert home(tmp_path / "explicit") == tmp_path / "explicit"

    def test_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEAMWATCH_HOME", str(tmp_path / "env"))
        assert home() == tmp_path / "env"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("TEAMWATCH_HOME", raising=False)
        assert home() == Path.home() / ".claude"

    def test_home_files(self, tmp_path):
        assert config_path(tmp_path) == tmp_path / "teamwatch.yaml"
        assert log_file_path(tmp_path) == tmp_path / "teamwatch.log"


class TestEntityPaths:
    def test_team_config(self, settings):
        assert team_config_path(settings, "alpha") == settings.teams_root / "alpha" / "config.json"

    def test_task_dir(self, settings):
        assert task_dir(settings, "alpha") == settings.tasks_root / "alpha"

    def test_inbox(self, settings):
        assert inbox_path(settings, "alpha", "bob") == (
            settings.teams_root / "alpha" / "inboxes" / "bob.json"
        )

    def test_output(self, settings):
        assert output_path(settings, "task-7") == settings.outputs_root / "task-7.output"

    def test_archive(self, settings):
        name = "alpha_2025-01-15T10-30-45.123Z.json"
        assert archive_path(settings, name) == settings.archive_root / name

    def test_entity_paths_reject_traversal(self, settings):
        with pytest.raises(InvalidIdentifier):
            team_config_path(settings, "../alpha")
        with pytest.raises(InvalidIdentifier):
            inbox_path(settings, "alpha", "../../bob")
