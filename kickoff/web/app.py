"""
FastAPI application: the admin and public web backend.

Exposes:
  GET  /api/config                     Tournament defaults for the UI
  GET  /api/tournament                 Tournament, teams and matches
  GET  /api/standings                  Group tables
  GET  /api/live-match                 Live match with its computed clock
  GET  /api/next-match                 Next open match
  POST /api/analyze                    Check a format before closing registration
  ...  /api/teams, /api/matches, ...   Admin commands (see the route table below)
  WS   /ws/live                        Snapshot on connect, then every event

Every admin route is a thin wrapper around one TournamentOrchestrator
command.  Rejections (kickoff.errors) are mapped to HTTP status codes by a
single exception handler.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import logging.handlers
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from kickoff.config import Config, LoggingConfig, load_config
from kickoff.errors import (
    ConcurrentLiveMatchError,
    InfeasibleConfigurationError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
    TournamentError,
)
from kickoff.events import TournamentEvent
from kickoff.models import Schedule
from kickoff.orchestrator import TournamentOrchestrator
from kickoff.serialization import to_json_dict
from kickoff.store import TournamentStore

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Logging                                                                      #
# --------------------------------------------------------------------------- #

def configure_logging(cfg: LoggingConfig) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]   # server console
    if cfg.file:
        log_file = Path(cfg.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=2 * 1024 * 1024, backupCount=3,  # 2 MB × 3 files
                encoding="utf-8",
            )
        )
    logging.basicConfig(
        level=cfg.level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        handlers=handlers,
    )


# --------------------------------------------------------------------------- #
# Broadcaster                                                                  #
# --------------------------------------------------------------------------- #

class LiveBroadcaster:
    """
    Fans published events out to every connected /ws/live client.

    publish() is the orchestrator's publish hook and is called from the
    threadpool that runs the sync route handlers, so delivery is handed to
    the event loop with call_soon_threadsafe.
    """

    def __init__(self) -> None:
        self._clients: set[asyncio.Queue[dict]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop | None) -> None:
        self._loop = loop

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def subscribe(self) -> asyncio.Queue[dict]:
        queue: asyncio.Queue[dict] = asyncio.Queue()
        self._clients.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict]) -> None:
        self._clients.discard(queue)

    def publish(self, name: str, event: TournamentEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or not self._clients:
            return
        payload = to_json_dict(event)
        loop.call_soon_threadsafe(self._fan_out, payload)

    def _fan_out(self, payload: dict) -> None:
        for queue in list(self._clients):
            queue.put_nowait(payload)


# --------------------------------------------------------------------------- #
# Payload helpers                                                              #
# --------------------------------------------------------------------------- #

def _required(payload: dict, key: str) -> Any:
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise HTTPException(status_code=400, detail=f"{key} is required")
    return value


def _int(payload: dict, key: str, default: int | None = None) -> int | None:
    value = payload.get(key, default)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{key} must be an integer") from exc


def _datetime(payload: dict, key: str) -> datetime | None:
    value = payload.get(key)
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{key} must be an ISO datetime") from exc


def _error_response(exc: TournamentError) -> JSONResponse:
    match exc:
        case InfeasibleConfigurationError():
            status = 400
            detail: dict[str, Any] = {"error": str(exc), **to_json_dict(exc.analysis)}
        case InvalidTransitionError():
            status = 409
            detail = {"error": str(exc), "command": exc.command, "state": exc.state}
        case ConcurrentLiveMatchError():
            status = 409
            detail = {"error": str(exc), "live_match_id": exc.live_match_id}
        case NotFoundError():
            status = 404
            detail = {"error": str(exc), "kind": exc.kind, "key": exc.key}
        case InvalidOperationError():
            status = 400
            detail = {"error": str(exc)}
        case _:
            status = 400
            detail = {"error": str(exc)}
    logger.warning("Rejected (%d): %s", status, exc)
    return JSONResponse(status_code=status, content={"detail": detail})


# --------------------------------------------------------------------------- #
# Application factory                                                          #
# --------------------------------------------------------------------------- #

def create_app(
    config: Config,
    orchestrator: TournamentOrchestrator | None = None,
) -> FastAPI:
    orch = orchestrator or TournamentOrchestrator(defaults=config.tournament)
    broadcaster = LiveBroadcaster()
    orch.set_publisher(broadcaster.publish)

    async def _ticker() -> None:
        """Periodic live-score-update snapshots while a match is live."""
        while True:
            await asyncio.sleep(config.tournament.live_tick_seconds)
            if broadcaster.client_count:
                await asyncio.to_thread(orch.broadcast_live_snapshot)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        broadcaster.bind(asyncio.get_running_loop())
        ticker = asyncio.create_task(_ticker())
        try:
            yield
        finally:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker
            broadcaster.bind(None)

    app = FastAPI(title="Kickoff", lifespan=lifespan)
    app.state.orchestrator = orch
    app.state.broadcaster = broadcaster

    @app.exception_handler(TournamentError)
    async def _tournament_error(request, exc: TournamentError) -> JSONResponse:
        return _error_response(exc)

    def _state_payload() -> dict:
        state = orch.snapshot()
        return {
            "tournament": to_json_dict(state.tournament),
            "teams": to_json_dict(state.teams),
            "matches": to_json_dict(state.matches),
        }

    def _live_payload() -> dict | None:
        match = orch.live_match()
        if match is None:
            return None
        return {"match": to_json_dict(match), "time": to_json_dict(orch.live_time())}

    # ----------------------------------------------------------------------- #
    # Public reads                                                             #
    # ----------------------------------------------------------------------- #

    @app.get("/api/config")
    def get_config():
        t = config.tournament
        return {
            "half_time_minutes": t.half_time_minutes,
            "group_size": t.group_size,
            "match_minutes": t.match_minutes,
            "field": t.field,
            "live_tick_seconds": t.live_tick_seconds,
        }

    @app.get("/api/tournament")
    def get_tournament():
        return _state_payload()

    @app.get("/api/teams")
    def get_teams():
        return to_json_dict(orch.teams)

    @app.get("/api/teams/jersey-colors")
    def get_jersey_colors():
        return orch.jersey_color_usage()

    @app.get("/api/matches")
    def get_matches():
        return to_json_dict(orch.matches)

    @app.get("/api/matches/{match_id}")
    def get_match(match_id: str):
        return to_json_dict(orch.get_match(match_id))

    @app.get("/api/standings")
    def get_standings():
        return to_json_dict(orch.group_tables())

    @app.get("/api/live-match")
    def get_live_match():
        return _live_payload()

    @app.get("/api/next-match")
    def get_next_match():
        return to_json_dict(orch.next_match())

    # ----------------------------------------------------------------------- #
    # Tournament                                                               #
    # ----------------------------------------------------------------------- #

    @app.post("/api/analyze")
    def analyze(payload: dict):
        result = orch.analyze_config(
            _int(payload, "team_count"),
            str(_required(payload, "format")),
            payload.get("options") or {},
        )
        return to_json_dict(result)

    @app.post("/api/tournament")
    def create_tournament(payload: dict):
        return to_json_dict(orch.create_tournament(_int(payload, "year")))

    @app.delete("/api/tournament")
    def reset_tournament():
        orch.reset_tournament()
        return {"ok": True}

    @app.put("/api/tournament/status")
    def set_status(payload: dict):
        return to_json_dict(orch.set_status(str(_required(payload, "status"))))

    @app.post("/api/tournament/close-registration")
    def close_registration(payload: dict):
        fixtures = orch.close_registration(
            str(_required(payload, "format")), payload.get("options") or {}
        )
        return to_json_dict(fixtures)

    @app.post("/api/tournament/reconfigure")
    def reconfigure(payload: dict):
        fixtures = orch.reconfigure(
            str(_required(payload, "format")), payload.get("options") or {}
        )
        return to_json_dict(fixtures)

    # ----------------------------------------------------------------------- #
    # Teams                                                                    #
    # ----------------------------------------------------------------------- #

    @app.post("/api/teams")
    def register_team(payload: dict):
        team = orch.register_team(
            str(_required(payload, "name")),
            contact_name=str(payload.get("contact_name", "")),
            contact_info=str(payload.get("contact_info", "")),
            jersey_color=payload.get("jersey_color"),
        )
        return to_json_dict(team)

    @app.patch("/api/teams/{team_id}")
    def update_team(team_id: str, payload: dict):
        team = orch.update_team(
            team_id,
            name=payload.get("name"),
            contact_name=payload.get("contact_name"),
            contact_info=payload.get("contact_info"),
            jersey_color=payload.get("jersey_color"),
        )
        return to_json_dict(team)

    @app.delete("/api/teams/{team_id}")
    def delete_team(team_id: str):
        orch.delete_team(team_id)
        return {"ok": True}

    # ----------------------------------------------------------------------- #
    # Fixtures                                                                 #
    # ----------------------------------------------------------------------- #

    @app.post("/api/fixtures/swiss-round")
    def next_swiss_round():
        return to_json_dict(orch.generate_next_swiss_round())

    @app.post("/api/fixtures/knockout")
    def generate_knockout(payload: dict | None = None):
        payload = payload or {}
        final_table = payload.get("final_table")
        return to_json_dict(
            orch.generate_knockout(payload.get("options"), final_table)
        )

    @app.post("/api/fixtures/penalties")
    def generate_penalties():
        return to_json_dict(orch.generate_penalty_shootouts())

    @app.post("/api/matches")
    def add_match(payload: dict):
        when = _datetime(payload, "scheduled")
        match = orch.add_match(
            str(_required(payload, "team1")),
            str(_required(payload, "team2")),
            phase=payload.get("phase", "group"),
            group=payload.get("group"),
            label=str(payload.get("label", "")),
            scheduled=Schedule(datetime=when, field=payload.get("field") or config.tournament.field) if when else None,
        )
        return to_json_dict(match)

    @app.patch("/api/matches/{match_id}")
    def update_match(match_id: str, payload: dict):
        match = orch.update_match(
            match_id,
            team1=payload.get("team1"),
            team2=payload.get("team2"),
            label=payload.get("label"),
            referee_team=payload.get("referee"),
            remove_referee=bool(payload.get("remove_referee", False)),
        )
        return to_json_dict(match)

    @app.delete("/api/matches/{match_id}")
    def delete_match(match_id: str):
        orch.delete_match(match_id)
        return {"ok": True}

    @app.post("/api/matches/{match_id}/result")
    def enter_result(match_id: str, payload: dict):
        match = orch.enter_result(
            match_id,
            _int(payload, "score1", _required(payload, "score1")),
            _int(payload, "score2", _required(payload, "score2")),
            _int(payload, "penalty_score1"),
            _int(payload, "penalty_score2"),
        )
        return to_json_dict(match)

    @app.post("/api/results/reset")
    def reset_results():
        orch.reset_results()
        return {"ok": True}

    # ----------------------------------------------------------------------- #
    # Scheduling                                                               #
    # ----------------------------------------------------------------------- #

    @app.post("/api/matches/{match_id}/schedule")
    def schedule_match(match_id: str, payload: dict):
        when = _datetime(payload, "datetime")
        if when is None:
            raise HTTPException(status_code=400, detail="datetime is required")
        return to_json_dict(orch.schedule_match(match_id, when, payload.get("field")))

    @app.post("/api/schedule")
    def schedule_all(payload: dict | None = None):
        payload = payload or {}
        scheduled = orch.schedule_all(
            _datetime(payload, "start"),
            _int(payload, "match_minutes"),
            payload.get("field"),
        )
        return to_json_dict(scheduled)

    @app.delete("/api/schedule")
    def reset_schedules():
        orch.reset_schedules()
        return {"ok": True}

    @app.post("/api/referees")
    def assign_referees():
        return to_json_dict(orch.assign_referees())

    # ----------------------------------------------------------------------- #
    # Live match                                                               #
    # ----------------------------------------------------------------------- #

    @app.post("/api/live/{match_id}/start")
    def start_match(match_id: str, payload: dict | None = None):
        payload = payload or {}
        return to_json_dict(orch.start_match(match_id, _int(payload, "half_time_minutes")))

    @app.post("/api/live/{match_id}/pause")
    def pause_match(match_id: str):
        return to_json_dict(orch.pause_match(match_id))

    @app.post("/api/live/{match_id}/resume")
    def resume_match(match_id: str):
        return to_json_dict(orch.resume_match(match_id))

    @app.post("/api/live/{match_id}/halftime")
    def start_halftime(match_id: str):
        return to_json_dict(orch.start_halftime(match_id))

    @app.post("/api/live/{match_id}/second-half")
    def start_second_half(match_id: str):
        return to_json_dict(orch.start_second_half(match_id))

    @app.post("/api/live/{match_id}/score")
    def update_score(match_id: str, payload: dict):
        match = orch.update_live_score(
            match_id,
            _int(payload, "score1", _required(payload, "score1")),
            _int(payload, "score2", _required(payload, "score2")),
        )
        return to_json_dict(match)

    @app.post("/api/live/{match_id}/finish")
    def finish_match(match_id: str, payload: dict | None = None):
        payload = payload or {}
        match = orch.finish_match(
            match_id,
            _int(payload, "penalty_score1"),
            _int(payload, "penalty_score2"),
        )
        return to_json_dict(match)

    @app.post("/api/live/{match_id}/abort")
    def abort_match(match_id: str):
        return to_json_dict(orch.abort_match(match_id))

    # ----------------------------------------------------------------------- #
    # WebSocket                                                                #
    # ----------------------------------------------------------------------- #

    @app.websocket("/ws/live")
    async def live_ws(ws: WebSocket) -> None:
        await ws.accept()
        queue = broadcaster.subscribe()
        try:
            snapshot = {"type": "snapshot", "name": "snapshot", **_state_payload(), "live": _live_payload()}
            await ws.send_json(snapshot)

            async def _send_loop() -> None:
                while True:
                    await ws.send_json(await queue.get())

            async def _receive_loop() -> None:
                # Clients only listen; anything they send is ignored.
                with contextlib.suppress(WebSocketDisconnect, RuntimeError):
                    while True:
                        await ws.receive_text()

            send_task = asyncio.create_task(_send_loop())
            recv_task = asyncio.create_task(_receive_loop())
            done, pending = await asyncio.wait(
                {send_task, recv_task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
                    await task
            for task in done:
                if task.exception() and not isinstance(task.exception(), WebSocketDisconnect):
                    raise task.exception()  # type: ignore[misc]
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.unsubscribe(queue)

    return app


def build_app() -> FastAPI:
    """
    uvicorn factory: config from $KICKOFF_CONFIG (default config.yaml),
    state restored from the store.
    """
    config = load_config(os.environ.get("KICKOFF_CONFIG", "config.yaml"))
    configure_logging(config.logging)

    store = TournamentStore(config.data_dir_path)
    orchestrator = TournamentOrchestrator(persist=store.save, defaults=config.tournament)
    state = store.load()
    if state is not None:
        orchestrator.load(state)
    else:
        logger.info("No saved tournament in %s", config.data_dir_path)
    return create_app(config, orchestrator)
