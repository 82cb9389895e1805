from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping

from .errors import ConfigError


class TableRole(str, Enum):
    PLAYER = "player"
    TEAM = "team"
    DETAIL = "detail"


@dataclass(frozen=True)
class TableSpec:
    role: TableRole
    table_id: str
    view_id: str


class TableRegistry:
    """Closed mapping of table roles to remote table and view ids.

    Lookups by table id fall back to the player table, which is what callers get
    when they pass an empty or unknown id.
    """

    def __init__(self, specs: Mapping[TableRole, TableSpec]) -> None:
        missing = [role.value for role in TableRole if role not in specs]
        if missing:
            raise ConfigError(f"missing table config for roles: {', '.join(missing)}")
        by_id: Dict[str, TableSpec] = {}
        for spec in specs.values():
            if not spec.table_id:
                raise ConfigError(f"table_id is required for role '{spec.role.value}'")
            if not spec.view_id:
                raise ConfigError(f"view_id is required for role '{spec.role.value}'")
            if spec.table_id in by_id:
                other = by_id[spec.table_id].role.value
                raise ConfigError(f"table_id {spec.table_id} is shared by '{other}' and '{spec.role.value}'")
            by_id[spec.table_id] = spec
        self._specs = dict(specs)
        self._by_id = by_id

    @classmethod
    def from_config(cls, raw: Mapping[str, Any]) -> "TableRegistry":
        specs: Dict[TableRole, TableSpec] = {}
        for role in TableRole:
            entry = raw.get(role.value) or {}
            specs[role] = TableSpec(
                role=role,
                table_id=str(entry.get("table_id") or ""),
                view_id=str(entry.get("view_id") or ""),
            )
        return cls(specs)

    def __getitem__(self, role: TableRole) -> TableSpec:
        return self._specs[role]

    def resolve(self, table_id: str | None) -> TableSpec:
        if not table_id:
            return self._specs[TableRole.PLAYER]
        return self._by_id.get(table_id, self._specs[TableRole.PLAYER])
