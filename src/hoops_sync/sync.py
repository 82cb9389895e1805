"""Check-then-write synchronization of flat records into bitable tables.

``submit`` looks up the match id of a record batch in the target table and only
inserts when nothing is found. Submissions for the same match id are serialized
inside this process; two processes can still race between search and insert, so
global uniqueness needs a single writer.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence

from .bitable_client import BitableClient, items_of
from .errors import DuplicateGameError, InsertFailedError, RemoteApiError
from .logging_utils import log_json
from .mapper import MATCH_ID_FIELD, GameRecords
from .tables import TableRegistry, TableRole

Record = Mapping[str, Any]


def _unwrap(value: Any) -> Any:
    if isinstance(value, list) and value and isinstance(value[0], Mapping) and value[0].get("text"):
        return value[0]["text"]
    if isinstance(value, Mapping) and value.get("text"):
        return value["text"]
    return value


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def extract_match_id(records: Sequence[Record], field_names: Sequence[str] = (MATCH_ID_FIELD,)) -> Optional[Any]:
    """Return the match id of the first record that carries one."""
    for record in records:
        for name in field_names:
            value = record.get(name)
            if not _is_empty(value):
                return _unwrap(value)
    return None


@dataclass
class _KeyLock:
    lock: asyncio.Lock
    users: int = 0


class SyncClient:
    def __init__(
        self,
        client: BitableClient,
        tables: TableRegistry,
        column_labels: Optional[Mapping[str, Mapping[str, str]]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.tables = tables
        self.column_labels = {role: dict(labels or {}) for role, labels in (column_labels or {}).items()}
        self.logger = logger or logging.getLogger(__name__)
        self._locks: Dict[str, _KeyLock] = {}

    def labels_for(self, table_id: str) -> Dict[str, str]:
        return self.column_labels.get(self.tables.resolve(table_id).role.value, {})

    def match_id_field(self, table_id: str) -> str:
        return self.labels_for(table_id).get(MATCH_ID_FIELD, MATCH_ID_FIELD)

    def _labelled(self, table_id: str, record: Record) -> Dict[str, Any]:
        labels = self.labels_for(table_id)
        return {labels.get(key, key): value for key, value in record.items()}

    @asynccontextmanager
    async def _serialized(self, table_id: str, match_id: Any) -> AsyncIterator[None]:
        key = f"{table_id}:{match_id}"
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyLock(asyncio.Lock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(key, None)

    async def search(self, table_id: str, view_id: str, match_id: Any) -> Dict[str, Any]:
        return await self.client.search_records(table_id, view_id, self.match_id_field(table_id), match_id)

    async def submit(self, records: Sequence[Record], table_id: str = "") -> Dict[str, Any]:
        records = list(records)
        target = table_id or self.tables[TableRole.PLAYER].table_id
        view_id = self.tables.resolve(table_id).view_id
        match_id = extract_match_id(records, (MATCH_ID_FIELD, self.match_id_field(target)))
        if match_id is None:
            log_json(self.logger, "submit_without_match_id", level=logging.WARNING, table_id=target, records=len(records))
            return await self._insert(target, records)

        async with self._serialized(target, match_id):
            found = await self.search(target, view_id, match_id)
            if found.get("code") != 0:
                raise RemoteApiError(found.get("code"), found.get("msg"), operation="search")
            if items_of(found):
                log_json(self.logger, "duplicate_game", level=logging.WARNING, table_id=target, match_id=match_id)
                raise DuplicateGameError(match_id, target)
            return await self._insert(target, records)

    async def submit_players(self, records: Sequence[Record]) -> Dict[str, Any]:
        return await self.submit(records, self.tables[TableRole.PLAYER].table_id)

    async def submit_game(self, game: GameRecords) -> Dict[str, Dict[str, Any]]:
        """Sync the player, team and detail tables one after another.

        Tables are independent: a failure leaves earlier tables written.
        """
        responses: Dict[str, Dict[str, Any]] = {}
        batches: List[tuple] = [
            (TableRole.PLAYER, game.players),
            (TableRole.TEAM, game.teams),
            (TableRole.DETAIL, game.details),
        ]
        for role, records in batches:
            if not records:
                log_json(self.logger, "skip_empty_table", role=role.value, match_id=game.match_id)
                continue
            responses[role.value] = await self.submit(records, self.tables[role].table_id)
        return responses

    async def _insert(self, table_id: str, records: Sequence[Record]) -> Dict[str, Any]:
        data = await self.client.batch_create_records(table_id, [self._labelled(table_id, r) for r in records])
        if data.get("code") != 0:
            log_json(self.logger, "insert_failed", level=logging.ERROR, table_id=table_id, code=data.get("code"), remote_msg=data.get("msg"))
            raise InsertFailedError(data.get("code"), data.get("msg"))
        log_json(self.logger, "insert_ok", table_id=table_id, records=len(records))
        return data
