"""Summary counters over a list of teams.

Team configs and tasks are hand-written JSON, so field types are not
trusted: a ``members`` that is not a list counts as no members and a
``status`` that is not a string is counted only in ``totalTasks``.
"""

STATUS_COUNTERS = {
    "pending": "pendingTasks",
    "in_progress": "inProgressTasks",
    "completed": "completedTasks",
    "deleted": "deletedTasks",
}


def team_members(team: dict) -> list:
    """Return the ``config.members`` list of *team*, or ``[]`` if malformed."""
    config = team.get("config")
    members = config.get("members") if isinstance(config, dict) else None
    return members if isinstance(members, list) else []


def team_tasks(team: dict) -> list[dict]:
    tasks = team.get("tasks")
    if not isinstance(tasks, list):
        return []
    return [t for t in tasks if isinstance(t, dict)]


def is_blocked(task: dict) -> bool:
    """A pending task with a non-empty ``blockedBy`` list is blocked."""
    return task.get("status") == "pending" and bool(task.get("blockedBy"))


def calculate_team_stats(teams: list[dict]) -> dict:
    """Reduce *teams* to counters.

    ``blockedTasks`` overlays ``pendingTasks``: a blocked task is counted
    in both.  Pure function; the input is not modified.
    """
    stats = {
        "totalTeams": len(teams),
        "totalAgents": 0,
        "totalTasks": 0,
        "pendingTasks": 0,
        "inProgressTasks": 0,
        "completedTasks": 0,
        "deletedTasks": 0,
        "blockedTasks": 0,
    }
    for team in teams:
        stats["totalAgents"] += len(team_members(team))
        tasks = team_tasks(team)
        stats["totalTasks"] += len(tasks)
        for task in tasks:
            status = task.get("status")
            counter = STATUS_COUNTERS.get(status) if isinstance(status, str) else None
            if counter:
                stats[counter] += 1
            if is_blocked(task):
                stats["blockedTasks"] += 1
    return stats
