from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import ConfigError
from .tables import TableRegistry, TableRole


DEFAULTS: Dict[str, Any] = {
    "feishu": {
        "base_url": "https://open.feishu.cn/open-apis",
        "app_id": None,
        "app_secret": None,
        "app_token": "",
        "timeout_seconds": 30,
        "max_concurrency": 5,
    },
    "tables": {
        "player": {"table_id": "tblK0ZVeOvXnzaLe", "view_id": "vewiURewir"},
        "team": {"table_id": "tblK9ypDJ2sFyC6i", "view_id": "vewiURewir"},
        "detail": {"table_id": "tblZwxf96Tw1EC71", "view_id": "vewq4i29ck"},
    },
    "column_labels": {},
    "login": {
        "username": "admin",
        "password": "admin123",
        "session_ttl_seconds": 24 * 60 * 60,
    },
    "server": {"host": "0.0.0.0", "port": 3000},
    "log_level": "INFO",
}

# env var -> (section, key)
ENV_OVERRIDES: Dict[str, Tuple[str, ...]] = {
    "FEISHU_BASE_URL": ("feishu", "base_url"),
    "FEISHU_APP_ID": ("feishu", "app_id"),
    "FEISHU_APP_SECRET": ("feishu", "app_secret"),
    "FEISHU_APP_TOKEN": ("feishu", "app_token"),
    "FEISHU_PLAYER_TABLE_ID": ("tables", "player", "table_id"),
    "FEISHU_TEAM_TABLE_ID": ("tables", "team", "table_id"),
    "FEISHU_DETAIL_TABLE_ID": ("tables", "detail", "table_id"),
    "FEISHU_PLAYER_VIEW_ID": ("tables", "player", "view_id"),
    "FEISHU_TEAM_VIEW_ID": ("tables", "team", "view_id"),
    "FEISHU_DETAIL_VIEW_ID": ("tables", "detail", "view_id"),
    "LOGIN_USERNAME": ("login", "username"),
    "LOGIN_PASSWORD": ("login", "password"),
    "PORT": ("server", "port"),
    "LOG_LEVEL": ("log_level",),
}


@dataclass
class Config:
    raw: Dict[str, Any]

    def __post_init__(self) -> None:
        self._tables: Optional[TableRegistry] = None

    @property
    def feishu(self) -> Dict[str, Any]:
        return self.raw["feishu"]

    @property
    def base_url(self) -> str:
        return self.feishu.get("base_url", DEFAULTS["feishu"]["base_url"])

    @property
    def app_token(self) -> str:
        return self.feishu.get("app_token") or ""

    @property
    def tables(self) -> TableRegistry:
        if self._tables is None:
            self._tables = TableRegistry.from_config(self.raw.get("tables", {}))
        return self._tables

    @property
    def column_labels(self) -> Dict[str, Dict[str, str]]:
        return self.raw.get("column_labels") or {}

    @property
    def login(self) -> Dict[str, Any]:
        return self.raw.get("login", DEFAULTS["login"])

    @property
    def server(self) -> Dict[str, Any]:
        return self.raw.get("server", DEFAULTS["server"])

    @property
    def log_level(self) -> str:
        return str(self.raw.get("log_level", "INFO")).upper()


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def _apply_env(raw: Dict[str, Any], environ: Dict[str, str]) -> None:
    for name, path in ENV_OVERRIDES.items():
        value = environ.get(name)
        if value is None or value == "":
            continue
        node = raw
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value
    port = raw.get("server", {}).get("port")
    if port is not None:
        try:
            raw["server"]["port"] = int(port)
        except (TypeError, ValueError):
            raise ConfigError(f"server port must be an integer, got {port!r}")


def _check_column_labels(labels: Any) -> None:
    if not isinstance(labels, dict):
        raise ConfigError("column_labels must be a mapping of table role to column names")
    roles = {role.value for role in TableRole}
    for role, mapping in labels.items():
        if role not in roles:
            raise ConfigError(f"column_labels has unknown table role '{role}'")
        if not isinstance(mapping, dict):
            raise ConfigError(f"column_labels.{role} must be a mapping")


def load_config(path: Optional[str] = "config.yaml", environ: Optional[Dict[str, str]] = None) -> Config:
    raw: Dict[str, Any] = {}
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping")
    merged = _merge(DEFAULTS, raw)
    _apply_env(merged, dict(os.environ) if environ is None else environ)
    cfg = Config(merged)
    # fail fast on a broken table layout
    cfg._tables = TableRegistry.from_config(merged.get("tables", {}))
    _check_column_labels(cfg.column_labels)
    return cfg


def get_service_credentials(app_id: Optional[str], app_secret: Optional[str]) -> Tuple[str, str]:
    if not app_id or not app_secret:
        raise RuntimeError("Missing service credentials; set FEISHU_APP_ID and FEISHU_APP_SECRET")
    return str(app_id), str(app_secret)
