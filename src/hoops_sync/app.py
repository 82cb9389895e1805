"""HTTP surface for login sessions and bitable sync."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .bitable_client import BitableClient, BitableConfig
from .config import Config, load_config
from .errors import (
    DuplicateGameError,
    GameDocumentError,
    HoopsSyncError,
    InvalidCredentialsError,
    SessionExpiredOrInvalid,
)
from .logging_utils import log_json
from .mapper import map_game
from .sessions import SessionStore
from .sync import SyncClient

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class AddRecordsRequest(BaseModel):
    records: List[Dict[str, Any]] = Field(default_factory=list)
    tableId: str = ""


class SearchRecordsRequest(BaseModel):
    tableId: str = ""
    viewId: str = ""
    gameId: Any = None


def build_sync_client(cfg: Config, log: Optional[logging.Logger] = None) -> SyncClient:
    client = BitableClient(BitableConfig.from_config(cfg))
    client.set_logger(log or logger)
    return SyncClient(client, cfg.tables, column_labels=cfg.column_labels, logger=log or logger)


def build_session_store(cfg: Config) -> SessionStore:
    login = cfg.login
    return SessionStore(
        str(login.get("username", "")),
        str(login.get("password", "")),
        ttl_seconds=float(login.get("session_ttl_seconds", 24 * 60 * 60)),
    )


def session_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization")
    if auth:
        token = auth.replace("Bearer ", "", 1).strip()
        if token:
            return token
    return request.headers.get("x-auth-token")


def get_sync(request: Request) -> SyncClient:
    return request.app.state.sync


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def require_session(request: Request, sessions: SessionStore = Depends(get_sessions)) -> str:
    return sessions.require(session_token(request))


def create_app(
    cfg: Optional[Config] = None,
    sync: Optional[SyncClient] = None,
    sessions: Optional[SessionStore] = None,
) -> FastAPI:
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.sync.client.close()

    app = FastAPI(title="hoops-sync", lifespan=lifespan)
    app.state.config = cfg
    app.state.sync = sync if sync is not None else build_sync_client(cfg)
    app.state.sessions = sessions if sessions is not None else build_session_store(cfg)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SessionExpiredOrInvalid)
    async def _session_error(request: Request, exc: SessionExpiredOrInvalid) -> JSONResponse:
        return JSONResponse(status_code=401, content={"error": str(exc)})

    @app.exception_handler(DuplicateGameError)
    async def _duplicate(request: Request, exc: DuplicateGameError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"error": str(exc), "matchId": exc.match_id})

    @app.exception_handler(GameDocumentError)
    async def _bad_document(request: Request, exc: GameDocumentError) -> JSONResponse:
        log_json(logger, "bad_game_document", level=logging.WARNING, path=request.url.path, error=str(exc))
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(HoopsSyncError)
    async def _sync_error(request: Request, exc: HoopsSyncError) -> JSONResponse:
        log_json(logger, "request_failed", level=logging.ERROR, path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(httpx.HTTPError)
    async def _upstream_error(request: Request, exc: httpx.HTTPError) -> JSONResponse:
        log_json(logger, "upstream_failed", level=logging.ERROR, path=request.url.path, error=str(exc))
        return JSONResponse(status_code=502, content={"error": str(exc)})

    @app.exception_handler(RuntimeError)
    async def _runtime_error(request: Request, exc: RuntimeError) -> JSONResponse:
        log_json(logger, "request_failed", level=logging.ERROR, path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True}

    @app.post("/api/auth/login")
    async def login(payload: LoginRequest, sessions: SessionStore = Depends(get_sessions)):
        try:
            token = sessions.login(payload.username, payload.password)
        except InvalidCredentialsError as exc:
            log_json(logger, "login_failed", level=logging.WARNING, username=payload.username)
            return JSONResponse(status_code=401, content={"success": False, "error": str(exc)})
        log_json(logger, "login_ok", username=payload.username)
        return {"success": True, "token": token, "message": "Logged in"}

    @app.get("/api/auth/check")
    async def check(request: Request, sessions: SessionStore = Depends(get_sessions)):
        if sessions.validate(session_token(request)):
            return {"authenticated": True}
        return JSONResponse(status_code=401, content={"authenticated": False})

    @app.post("/api/auth/logout")
    async def logout(request: Request, sessions: SessionStore = Depends(get_sessions)):
        sessions.logout(session_token(request))
        return {"success": True, "message": "Logged out"}

    @app.post("/api/feishu/add-records", dependencies=[Depends(require_session)])
    async def add_records(payload: AddRecordsRequest, sync: SyncClient = Depends(get_sync)):
        return await sync.submit(payload.records, payload.tableId)

    @app.post("/api/feishu/player/add-records", dependencies=[Depends(require_session)])
    async def add_player_records(payload: AddRecordsRequest, sync: SyncClient = Depends(get_sync)):
        return await sync.submit_players(payload.records)

    @app.post("/api/feishu/search-records", dependencies=[Depends(require_session)])
    async def search_records(payload: SearchRecordsRequest, sync: SyncClient = Depends(get_sync)):
        spec = sync.tables.resolve(payload.tableId)
        table_id = payload.tableId or spec.table_id
        view_id = payload.viewId or spec.view_id
        return await sync.search(table_id, view_id, payload.gameId)

    @app.post("/api/games/sync", dependencies=[Depends(require_session)])
    async def sync_game(document: Dict[str, Any] = Body(...), sync: SyncClient = Depends(get_sync)):
        game = map_game(document)
        tables = await sync.submit_game(game)
        return {"success": True, "matchId": game.match_id, "tables": tables}

    return app
