"""FastAPI application serving the live team view.

Provides:
    WS   /ws                               — observer channel (initial_data + pushes)
    GET  /api/teams                        — active teams + stats
    GET  /api/teams/{team}                 — one team's config + tasks
    GET  /api/teams/{team}/inboxes         — every inbox of a team
    GET  /api/teams/{team}/inboxes/{agent} — one agent's inbox
    GET  /api/inboxes                      — inboxes of all teams
    GET  /api/stats                        — stats only
    GET  /api/archive                      — archived teams, newest first
    GET  /api/archive/{filename}           — one archive record
    GET  /api/team-history                 — teams with file times, newest first
    GET  /api/agent-outputs                — tails of agent output logs
    GET  /api/agent-outputs/{task_id}      — one output log
    GET  /api/projects                     — session summaries per project
    GET  /api/projects/{project}/sessions  — session summaries of one project
    GET  /api/health                       — liveness + watcher status

The sync engine (watchers + event consumer) runs inside the FastAPI
lifespan, so uvicorn starts and stops everything together.  REST reads go
straight to the snapshot reader and never wait on the watcher.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from teamwatch.archive import list_archives, read_archive
from teamwatch.config import Settings, load_settings
from teamwatch.engine import SyncEngine
from teamwatch.fmt import utcnow
from teamwatch.inbox import read_agent_inbox, read_team_inboxes
from teamwatch.paths import InvalidIdentifier, home as _default_home, validate_identifier
from teamwatch.sessions import list_project_sessions, list_projects
from teamwatch.snapshot import (
    get_active_teams,
    get_agent_output,
    get_agent_outputs,
    get_team_history,
    list_team_names,
    read_team,
)
from teamwatch.stats import calculate_team_stats

logger = logging.getLogger(__name__)


def _checked(value: str, *, allow_dot: bool = False) -> str:
    """Validate a path parameter or raise HTTP 400."""
    try:
        return validate_identifier(value, allow_dot=allow_dot)
    except InvalidIdentifier as e:
        raise HTTPException(status_code=400, detail=str(e))


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Start/stop the sync engine with the server."""
    engine: SyncEngine = app.state.engine
    await engine.start()
    try:
        yield
    finally:
        await engine.stop()
        logger.info("Sync engine stopped")


def create_app(tw_home: Path | None = None, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI app.

    When neither argument is given (e.g. when called by uvicorn as a
    factory), settings are loaded from ``TEAMWATCH_HOME``.
    """
    if settings is None:
        if tw_home is None:
            tw_home = _default_home(
                override=Path(os.environ["TEAMWATCH_HOME"]) if "TEAMWATCH_HOME" in os.environ else None
            )
        settings = load_settings(tw_home)

    # Unified logging (file + console); only the first call takes effect
    from teamwatch.logging_setup import configure_logging
    configure_logging(settings.home, console=True)

    engine = SyncEngine(settings)
    app = FastAPI(title="teamwatch", lifespan=_lifespan)
    app.state.settings = settings
    app.state.engine = engine

    # --- Observer channel ---

    @app.websocket("/ws")
    async def observer_socket(websocket: WebSocket):
        await websocket.accept()
        await engine.connect(websocket)
        try:
            while True:
                # Observers do not send anything meaningful; reading keeps
                # the disconnect visible.
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            engine.hub.discard(websocket)

    # --- Teams ---

    @app.get("/api/teams")
    async def get_teams():
        teams = await get_active_teams(settings)
        return {"teams": teams, "stats": calculate_team_stats(teams)}

    @app.get("/api/teams/{team}")
    async def get_team(team: str):
        team = _checked(team)
        data = await read_team(settings, team)
        if data is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return data

    @app.get("/api/stats")
    async def get_stats():
        teams = await get_active_teams(settings)
        return {"stats": calculate_team_stats(teams), "timestamp": utcnow().isoformat()}

    @app.get("/api/team-history")
    async def team_history():
        return {"history": await get_team_history(settings)}

    # --- Inboxes ---

    @app.get("/api/teams/{team}/inboxes")
    async def get_team_inboxes(team: str):
        team = _checked(team)
        inboxes = await asyncio.to_thread(read_team_inboxes, settings, team)
        return {"team": team, "inboxes": {a: i.to_dict() for a, i in inboxes.items()}}

    @app.get("/api/teams/{team}/inboxes/{agent}")
    async def get_agent_inbox(team: str, agent: str):
        team = _checked(team)
        agent = _checked(agent)
        inbox = await asyncio.to_thread(read_agent_inbox, settings, team, agent)
        if inbox is None:
            raise HTTPException(status_code=404, detail="Inbox not found")
        return inbox.to_dict()

    @app.get("/api/inboxes")
    async def get_all_inboxes():
        result = {}
        for team in await list_team_names(settings):
            try:
                inboxes = await asyncio.to_thread(read_team_inboxes, settings, team)
            except InvalidIdentifier:
                continue
            result[team] = {a: i.to_dict() for a, i in inboxes.items()}
        return {"inboxes": result}

    # --- Archive ---

    @app.get("/api/archive")
    async def get_archives():
        archives = await asyncio.to_thread(list_archives, settings)
        return {"archives": archives, "count": len(archives)}

    @app.get("/api/archive/{filename}")
    async def get_archive(filename: str):
        filename = _checked(filename, allow_dot=True)
        try:
            record = await asyncio.to_thread(read_archive, settings, filename)
        except InvalidIdentifier as e:
            raise HTTPException(status_code=400, detail=str(e))
        if record is None:
            raise HTTPException(status_code=404, detail="Archive not found")
        return record

    # --- Agent outputs ---

    @app.get("/api/agent-outputs")
    async def agent_outputs():
        return {"outputs": await get_agent_outputs(settings)}

    @app.get("/api/agent-outputs/{task_id}")
    async def agent_output(task_id: str):
        task_id = _checked(task_id)
        output = await get_agent_output(settings, task_id)
        if output is None:
            raise HTTPException(status_code=404, detail="Output not found")
        return output

    # --- Project sessions ---

    @app.get("/api/projects")
    async def projects():
        return {"projects": await list_projects(settings)}

    @app.get("/api/projects/{project}/sessions")
    async def project_sessions(project: str):
        project = _checked(project)
        sessions = await list_project_sessions(settings, project)
        if sessions is None:
            raise HTTPException(status_code=404, detail="Project not found")
        return {"project": project, "sessions": sessions}

    # --- Health ---

    @app.get("/api/health")
    def health():
        return {
            "status": "healthy",
            "timestamp": utcnow().isoformat(),
            "watchers": {
                tree: {"path": str(root), "active": engine.watcher.watching[tree]}
                for tree, root in engine.watcher.roots.items()
            },
            "observers": len(engine.hub),
            "trackedTeams": engine.lifecycle.as_dict(),
        }

    return app
