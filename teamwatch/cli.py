"""teamwatch CLI entry point using Click.

Commands:
    teamwatch serve [--host H] [--port N] [--env-file .env]   — run the live server
    teamwatch teams                                           — list active teams + stats
    teamwatch history                                         — teams, most recently changed first
    teamwatch archives                                        — list archived teams
    teamwatch show-archive <filename>                         — print one archive record
    teamwatch outputs [--lines N]                             — tails of agent output logs
"""

import asyncio
import dataclasses
import json
from pathlib import Path

import click

from teamwatch.config import Settings, load_settings
from teamwatch.fmt import get_version, success, warn
from teamwatch.paths import InvalidIdentifier, home as _home


def _get_settings(ctx: click.Context) -> Settings:
    """Resolve settings from the --home override or the default home."""
    return load_settings(_home(ctx.obj.get("home_override") if ctx.obj else None))


@click.group()
@click.version_option(version=get_version(), prog_name="teamwatch")
@click.option(
    "--home", "home_override", type=click.Path(path_type=Path), default=None,
    envvar="TEAMWATCH_HOME",
    help="Override the data home (default: ~/.claude).",
)
@click.pass_context
def main(ctx: click.Context, home_override: Path | None) -> None:
    """teamwatch — live view and archive of agent-team workspaces."""
    ctx.ensure_object(dict)
    ctx.obj["home_override"] = home_override


# ──────────────────────────────────────────────────────────────
# teamwatch serve
# ──────────────────────────────────────────────────────────────

@main.command()
@click.option("--host", default=None, help="Interface to bind (default from settings: 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Port to bind (default from settings: 3001).")
@click.option(
    "--env-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to .env file to load before starting.",
)
@click.option(
    "--polling/--native", default=None,
    help="Force polling or native filesystem notifications.",
)
@click.pass_context
def serve(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    env_file: Path | None,
    polling: bool | None,
) -> None:
    """Run the HTTP/WebSocket server with live file watching."""
    if env_file:
        from dotenv import load_dotenv
        load_dotenv(env_file)
        success(f"Loaded env file: {env_file}")

    settings = _get_settings(ctx)
    if polling is not None:
        settings = dataclasses.replace(
            settings, watch=dataclasses.replace(settings.watch, use_polling=polling),
        )

    from teamwatch.logging_setup import configure_logging
    from teamwatch.web import create_app
    import uvicorn

    configure_logging(settings.home, console=True)
    host = host or settings.host
    port = port or settings.port
    success(f"teamwatch v{get_version()} on http://{host}:{port}")
    success(f"Monitoring teams at: {settings.teams_root}")
    success(f"Monitoring tasks at: {settings.tasks_root}")

    # Binding failures propagate and end the process.
    uvicorn.run(create_app(settings=settings), host=host, port=port, log_level="info")


# ──────────────────────────────────────────────────────────────
# Read-only views
# ──────────────────────────────────────────────────────────────

@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
@click.pass_context
def teams(ctx: click.Context, as_json: bool) -> None:
    """List active teams and task counters."""
    from teamwatch.snapshot import get_active_teams
    from teamwatch.stats import calculate_team_stats, team_members, team_tasks

    settings = _get_settings(ctx)
    team_list = asyncio.run(get_active_teams(settings))
    stats = calculate_team_stats(team_list)
    if as_json:
        click.echo(json.dumps({"teams": team_list, "stats": stats}, indent=2))
        return
    if not team_list:
        click.echo("No active teams.")
        return
    for team in team_list:
        members = team_members(team)
        click.echo(f"  {team['name']:<30} {len(members)} agent(s), {len(team_tasks(team))} task(s)")
    click.echo()
    click.echo(
        f"{stats['totalTeams']} team(s), {stats['totalAgents']} agent(s), "
        f"{stats['completedTasks']}/{stats['totalTasks']} task(s) completed, "
        f"{stats['blockedTasks']} blocked"
    )


@main.command()
@click.pass_context
def history(ctx: click.Context) -> None:
    """List teams, most recently changed first."""
    from teamwatch.snapshot import get_team_history

    entries = asyncio.run(get_team_history(_get_settings(ctx)))
    if not entries:
        click.echo("No team history.")
        return
    for entry in entries:
        click.echo(f"  {entry['name']:<30} modified {entry['lastModified']}")


@main.command()
@click.pass_context
def archives(ctx: click.Context) -> None:
    """List archived teams, newest first."""
    from teamwatch.archive import list_archives

    records = list_archives(_get_settings(ctx))
    if not records:
        click.echo("No archived teams.")
        return
    for rec in records:
        overview = (rec.get("summary") or {}).get("overview", "")
        click.echo(f"  {rec['filename']}")
        if overview:
            click.echo(f"      {overview}")


@main.command("show-archive")
@click.argument("filename")
@click.pass_context
def show_archive(ctx: click.Context, filename: str) -> None:
    """Print one archive record as JSON."""
    from teamwatch.archive import read_archive

    try:
        record = read_archive(_get_settings(ctx), filename)
    except InvalidIdentifier as e:
        raise click.BadParameter(str(e), param_hint="FILENAME")
    if record is None:
        warn(f"Archive not found: {filename}")
        raise SystemExit(1)
    click.echo(json.dumps(record, indent=2, ensure_ascii=False))


@main.command()
@click.option("--lines", type=int, default=10, help="Lines of each log to show (default: 10).")
@click.pass_context
def outputs(ctx: click.Context, lines: int) -> None:
    """Show the tails of agent output logs, most recent first."""
    from teamwatch.snapshot import get_agent_outputs

    entries = asyncio.run(get_agent_outputs(_get_settings(ctx)))
    if not entries:
        click.echo("No agent outputs.")
        return
    for entry in entries:
        click.echo(click.style(f"── {entry['taskId']} ({entry['lastModified']})", bold=True))
        tail = entry["content"].splitlines()[-lines:] if lines > 0 else []
        for line in tail:
            click.echo(f"  {line}")
