"""teamwatch: live mirror and archive of agent-team workspaces."""

__version__ = "0.1.0"
