from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .config import Config, get_service_credentials
from .errors import RemoteApiError, TokenAcquisitionError
from .logging_utils import log_json
from .token_cache import TokenCache

TOKEN_PATH = "/auth/v3/tenant_access_token/internal"
RECORDS_PATH = "/bitable/v1/apps/{app_token}/tables/{table_id}/records"


@dataclass
class BitableConfig:
    base_url: str
    app_token: str
    app_id: Optional[str] = None
    app_secret: Optional[str] = None
    timeout_seconds: float = 30
    max_concurrency: int = 5

    @classmethod
    def from_config(cls, cfg: Config) -> "BitableConfig":
        feishu = cfg.feishu
        return cls(
            base_url=cfg.base_url,
            app_token=cfg.app_token,
            app_id=feishu.get("app_id"),
            app_secret=feishu.get("app_secret"),
            timeout_seconds=float(feishu.get("timeout_seconds", 30)),
            max_concurrency=int(feishu.get("max_concurrency", 5)),
        )


class BitableClient:
    """Async client for the bitable open API.

    Every call is a single attempt. Responses are returned as decoded JSON so the
    caller can inspect ``code``/``msg``; only the token exchange checks ``code`` here.
    """

    def __init__(
        self,
        cfg: BitableConfig,
        token_cache: Optional[TokenCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cfg = cfg
        self.token_cache = token_cache or TokenCache()
        self._semaphore = asyncio.Semaphore(cfg.max_concurrency)
        self._client = httpx.AsyncClient(
            base_url=cfg.base_url,
            timeout=cfg.timeout_seconds,
            transport=transport,
        )
        self._logger: Optional[logging.Logger] = None

    def set_logger(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _log(self, msg: str, level: int = logging.INFO, **extra: Any) -> None:
        if self._logger:
            log_json(self._logger, msg, level=level, **extra)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BitableClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _records_path(self, table_id: str) -> str:
        return RECORDS_PATH.format(app_token=self.cfg.app_token, table_id=table_id)

    async def _post_json(
        self,
        path: str,
        body: Mapping[str, Any],
        params: Optional[Dict[str, Any]] = None,
        auth: bool = True,
    ) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if auth:
            token = await self.get_tenant_access_token()
            headers["Authorization"] = f"Bearer {token}"
        async with self._semaphore:
            try:
                resp = await self._client.post(path, json=body, params=params, headers=headers)
            except httpx.RequestError as exc:
                self._log("http_error", level=logging.WARNING, path=path, error=str(exc))
                raise
        try:
            data = resp.json()
        except ValueError:
            resp.raise_for_status()
            raise RemoteApiError(resp.status_code, resp.text[:200], operation=path)
        if not isinstance(data, dict):
            raise RemoteApiError(resp.status_code, "unexpected response body", operation=path)
        return data

    async def get_tenant_access_token(self) -> str:
        cached = self.token_cache.get()
        if cached:
            return cached
        app_id, app_secret = get_service_credentials(self.cfg.app_id, self.cfg.app_secret)
        data = await self._post_json(
            TOKEN_PATH,
            {"app_id": app_id, "app_secret": app_secret},
            auth=False,
        )
        if data.get("code") != 0:
            self._log("tenant_token_failed", level=logging.ERROR, code=data.get("code"), remote_msg=data.get("msg"))
            raise TokenAcquisitionError(data.get("code"), data.get("msg"))
        entry = self.token_cache.put(data["tenant_access_token"], data.get("expire", 0))
        self._log("tenant_token_refreshed", expires_at=entry.expires_at)
        return entry.value

    async def search_records(
        self,
        table_id: str,
        view_id: str,
        field_name: str,
        value: Any,
        page_size: int = 1,
    ) -> Dict[str, Any]:
        body = {
            "view_id": view_id,
            "filter": {
                "conjunction": "and",
                "conditions": [
                    {"field_name": field_name, "operator": "is", "value": [value]},
                ],
            },
        }
        self._log("bitable_search", table_id=table_id, view_id=view_id, field=field_name, value=value)
        data = await self._post_json(
            self._records_path(table_id) + "/search",
            body,
            params={"page_size": page_size},
        )
        self._log("bitable_search_done", table_id=table_id, code=data.get("code"), items=len(items_of(data)))
        return data

    async def batch_create_records(self, table_id: str, records: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        body = {"records": [{"fields": dict(record)} for record in records]}
        self._log("bitable_batch_create", table_id=table_id, records=len(records))
        data = await self._post_json(self._records_path(table_id) + "/batch_create", body)
        self._log("bitable_batch_create_done", table_id=table_id, code=data.get("code"))
        return data


def items_of(data: Mapping[str, Any]) -> List[Any]:
    payload = data.get("data") or {}
    if not isinstance(payload, Mapping):
        return []
    return list(payload.get("items") or [])
