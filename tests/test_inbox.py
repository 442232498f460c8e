"""Tests for teamwatch.inbox — both on-disk inbox shapes."""

import json

import pytest

from teamwatch.inbox import Inbox, parse_inbox, read_agent_inbox, read_team_inboxes
from teamwatch.paths import InvalidIdentifier


MESSAGES = [
    {"from": "lead", "text": "start on the parser", "read": True},
    {"from": "lead", "text": "and the tests", "read": False},
]


def _write_inbox(settings, team, agent, payload):
    d = settings.teams_root / team / "inboxes"
    d.mkdir(parents=True, exist_ok=True)
    (d / f"{agent}.json").write_text(json.dumps(payload))


class TestParseInbox:
    def test_bare_array(self):
        inbox = parse_inbox("worker", MESSAGES)
        assert inbox.messages == MESSAGES

    def test_wrapped_object(self):
        inbox = parse_inbox("worker", {"messages": MESSAGES})
        assert inbox.messages == MESSAGES

    def test_both_shapes_resolve_the_same(self):
        assert parse_inbox("w", MESSAGES) == parse_inbox("w", {"messages": MESSAGES})

    @pytest.mark.parametrize("raw", [{"items": []}, "text", 3, None])
    def test_unknown_shape(self, raw):
        with pytest.raises(ValueError):
            parse_inbox("worker", raw)

    def test_non_object_entries_dropped(self):
        inbox = parse_inbox("worker", [MESSAGES[0], "junk", 7])
        assert inbox.messages == [MESSAGES[0]]

    def test_counts(self):
        d = Inbox(agent="worker", messages=MESSAGES + [{"text": "no flag"}]).to_dict()
        assert d["messageCount"] == 3
        assert d["unreadCount"] == 1


class TestReadInboxes:
    def test_team_inboxes(self, settings, make_team):
        make_team("alpha")
        _write_inbox(settings, "alpha", "lead", [])
        _write_inbox(settings, "alpha", "worker", {"messages": MESSAGES})

        inboxes = read_team_inboxes(settings, "alpha")
        assert sorted(inboxes) == ["lead", "worker"]
        assert inboxes["worker"].unread_count == 1

    def test_corrupt_inbox_skipped(self, settings, make_team):
        make_team("alpha")
        _write_inbox(settings, "alpha", "worker", MESSAGES)
        (settings.teams_root / "alpha" / "inboxes" / "broken.json").write_text("[")

        assert list(read_team_inboxes(settings, "alpha")) == ["worker"]

    def test_no_inbox_dir(self, settings, make_team):
        make_team("alpha")
        assert read_team_inboxes(settings, "alpha") == {}

    def test_single_inbox(self, settings, make_team):
        make_team("alpha")
        _write_inbox(settings, "alpha", "worker", MESSAGES)
        assert read_agent_inbox(settings, "alpha", "worker").messages == MESSAGES
        assert read_agent_inbox(settings, "alpha", "nobody") is None

    def test_unsafe_names_raise(self, settings):
        with pytest.raises(InvalidIdentifier):
            read_agent_inbox(settings, "alpha", "../config")
