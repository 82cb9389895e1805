"""Shared fixtures for the hoops_sync test suite.

The remote bitable API is replaced by an in-memory fake served through
``httpx.MockTransport`` so the sync protocol runs end to end without network.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

import httpx
import pytest

from hoops_sync.bitable_client import BitableClient, BitableConfig
from hoops_sync.config import Config, load_config
from hoops_sync.sessions import SessionStore
from hoops_sync.sync import SyncClient
from hoops_sync.token_cache import TokenCache


PLAYER_TABLE = "tblPlayer0000001"
TEAM_TABLE = "tblTeam000000001"
DETAIL_TABLE = "tblDetail0000001"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBitable:
    """Minimal stand-in for the bitable open API."""

    def __init__(self, token_code: int = 0, insert_code: int = 0, expire: int = 7200) -> None:
        self.token_code = token_code
        self.insert_code = insert_code
        self.expire = expire
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []
        self.token_requests = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        body = json.loads(request.content or b"{}")
        if path.endswith("/auth/v3/tenant_access_token/internal"):
            self.token_requests += 1
            if self.token_code != 0:
                return httpx.Response(200, json={"code": self.token_code, "msg": "app secret invalid"})
            return httpx.Response(
                200,
                json={
                    "code": 0,
                    "msg": "ok",
                    "tenant_access_token": f"t-{self.token_requests}",
                    "expire": self.expire,
                },
            )
        if request.headers.get("Authorization", "") != f"Bearer t-{self.token_requests}":
            return httpx.Response(200, json={"code": 99991663, "msg": "invalid access token"})
        table_id = path.split("/tables/")[1].split("/")[0]
        rows = self.tables.setdefault(table_id, [])
        if path.endswith("/records/search"):
            cond = body["filter"]["conditions"][0]
            wanted = cond["value"][0]
            items = [
                {"record_id": f"rec{i}", "fields": fields}
                for i, fields in enumerate(rows)
                if fields.get(cond["field_name"]) == wanted
            ]
            page_size = int(request.url.params.get("page_size", 20))
            return httpx.Response(
                200,
                json={"code": 0, "msg": "success", "data": {"items": items[:page_size], "total": len(items)}},
            )
        if path.endswith("/records/batch_create"):
            if self.insert_code != 0:
                return httpx.Response(200, json={"code": self.insert_code, "msg": "FieldNameNotFound"})
            created = []
            for rec in body["records"]:
                rows.append(rec["fields"])
                created.append({"record_id": f"rec{len(rows) - 1}", "fields": rec["fields"]})
            return httpx.Response(200, json={"code": 0, "msg": "success", "data": {"records": created}})
        return httpx.Response(404, json={"code": 404, "msg": "not found"})

    def calls(self, suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sample_config() -> Config:
    return load_config(
        None,
        environ={
            "FEISHU_BASE_URL": "https://bitable.test/open-apis",
            "FEISHU_APP_ID": "cli_test",
            "FEISHU_APP_SECRET": "secret",
            "FEISHU_APP_TOKEN": "appTok",
            "FEISHU_PLAYER_TABLE_ID": PLAYER_TABLE,
            "FEISHU_TEAM_TABLE_ID": TEAM_TABLE,
            "FEISHU_DETAIL_TABLE_ID": DETAIL_TABLE,
            "LOGIN_USERNAME": "coach",
            "LOGIN_PASSWORD": "whistle",
        },
    )


@pytest.fixture()
def fake_bitable() -> FakeBitable:
    return FakeBitable()


@pytest.fixture()
async def bitable_client(sample_config, fake_bitable, clock):
    client = BitableClient(
        BitableConfig.from_config(sample_config),
        token_cache=TokenCache(clock=clock),
        transport=httpx.MockTransport(fake_bitable.handler),
    )
    yield client
    await client.close()


@pytest.fixture()
def sync_client(bitable_client, sample_config) -> SyncClient:
    return SyncClient(bitable_client, sample_config.tables)


@pytest.fixture()
def session_store(clock) -> SessionStore:
    return SessionStore("coach", "whistle", clock=clock)


@pytest.fixture()
def sample_game_document() -> Dict[str, Any]:
    """A two-team game in the shape emitted by the scoring app."""
    return {
        "game": [
            {
                "id": "G20240518-01",
                "teamScores": {"Tigers": 80, "Sharks": 75},
                "players": [
                    {
                        "team": "Tigers",
                        "name": "Li Wei",
                        "number": 7,
                        "totalTime": 1500.4,
                        "currentTime": 99.2,
                        "score": 24,
                        "fouls": 2,
                        "plusMinus": 9,
                    },
                    {
                        "team": "Sharks",
                        "name": "Zhang Hao",
                        "number": 11,
                        "totalTime": 1320,
                        "currentTime": 0.5,
                        "score": 18,
                        "fouls": 4,
                        "plusMinus": -5,
                    },
                    {
                        "team": "Guests",
                        "name": "Wang Lei",
                        "number": 0,
                        "totalTime": 60,
                        "currentTime": 0,
                        "score": 0,
                        "fouls": 0,
                        "plusMinus": 0,
                    },
                ],
            }
        ],
        "details": [
            {
                "period": 1,
                "gameTime": "10:00",
                "type": "jumpball",
                "team": None,
                "player": None,
                "number": None,
                "value": None,
                "timestamp": None,
            },
            {
                "period": 1,
                "gameTime": "09:41",
                "type": "score",
                "team": "Tigers",
                "player": "Li Wei",
                "number": "7",
                "value": 2,
                "timestamp": 1716020000000,
            },
            {
                "period": 1,
                "gameTime": "09:10",
                "type": "foul",
                "team": "Sharks",
                "player": "Zhang Hao",
                "number": "11",
                "timestamp": 1716020031000,
            },
        ],
    }
