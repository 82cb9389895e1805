"""Flatten a raw game document into bitable-ready player, team and detail records.

The game document is the JSON produced by the scoring app::

    {
      "game": [{"id": ..., "teamScores": {team: score}, "players": [...]}],
      "details": [{"period": ..., "gameTime": ..., "timestamp": ..., ...}]
    }

Each ``map_*`` function is pure and preserves input order. ``map_game`` builds all
three record sets from a single match timestamp.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import GameDocumentError
from .results import result_for, team_results
from .timestamps import first_operation_time, match_timestamp

DEFAULT_MATCH_ID = 3
SENTINEL = -999
MATCH_ID_FIELD = "matchId"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

Record = Dict[str, Any]


@dataclass
class GameRecords:
    match_id: Any
    match_timestamp: int
    players: List[Record] = field(default_factory=list)
    teams: List[Record] = field(default_factory=list)
    details: List[Record] = field(default_factory=list)


def _entries(value: Any, name: str) -> List[Mapping[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise GameDocumentError(f"'{name}' must be a list, got {type(value).__name__}")
    for i, entry in enumerate(value):
        if not isinstance(entry, Mapping):
            raise GameDocumentError(f"'{name}[{i}]' must be an object, got {type(entry).__name__}")
    return list(value)


def _document(doc: Any) -> Mapping[str, Any]:
    if not isinstance(doc, Mapping):
        raise GameDocumentError(f"game document must be an object, got {type(doc).__name__}")
    return doc


def _game(doc: Mapping[str, Any]) -> Mapping[str, Any]:
    games = _entries(_document(doc).get("game"), "game")
    return games[0] if games else {}


def _details(doc: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    details = _document(doc).get("details")
    if details is None:
        return _entries(_game(doc).get("details"), "game[0].details")
    return _entries(details, "details")


def match_id(doc: Mapping[str, Any]) -> Any:
    return _game(doc).get("id") or DEFAULT_MATCH_ID


def team_scores(doc: Mapping[str, Any]) -> Mapping[str, Any]:
    scores = _game(doc).get("teamScores") or {}
    if not isinstance(scores, Mapping):
        raise GameDocumentError(f"'teamScores' must be an object, got {type(scores).__name__}")
    return scores


def doc_match_timestamp(doc: Mapping[str, Any], now: Optional[Callable[[], float]] = None) -> int:
    return match_timestamp(first_operation_time(_details(doc)), now=now)


def coerce_int(value: Any, default: int = SENTINEL) -> int:
    """Parse the leading integer of ``value``; ``default`` when there is none."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return default
        return int(value)
    m = _LEADING_INT.match(str(value))
    if not m:
        return default
    return int(m.group(1))


def or_sentinel(value: Any, default: Any = SENTINEL) -> Any:
    return default if value is None else value


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _play_time(player: Mapping[str, Any]) -> int:
    total = player.get("totalTime") or 0
    current = player.get("currentTime") or 0
    try:
        return round_half_up(float(total) + float(current))
    except (TypeError, ValueError, OverflowError):
        raise GameDocumentError(
            f"play time of {player.get('name')!r} must be numeric, got {total!r} + {current!r}"
        ) from None


def _player_records(doc: Mapping[str, Any], ts: int) -> List[Record]:
    mid = match_id(doc)
    results = team_results(team_scores(doc))
    records = []
    for p in _entries(_game(doc).get("players"), "players"):
        records.append(
            {
                MATCH_ID_FIELD: mid,
                "team": p.get("team"),
                "name": p.get("name"),
                "number": p.get("number"),
                "playTimeSeconds": _play_time(p),
                "score": p.get("score"),
                "fouls": p.get("fouls"),
                "plusMinus": p.get("plusMinus"),
                "matchTimestamp": ts,
                "result": result_for(results, p.get("team")),
            }
        )
    return records


def _team_records(doc: Mapping[str, Any], ts: int) -> List[Record]:
    mid = match_id(doc)
    scores = team_scores(doc)
    results = team_results(scores)
    return [
        {
            MATCH_ID_FIELD: mid,
            "team": team,
            "score": score,
            "matchTimestamp": ts,
            "result": results[team],
        }
        for team, score in scores.items()
    ]


def _detail_records(doc: Mapping[str, Any], ts: int) -> List[Record]:
    mid = match_id(doc)
    records = []
    for d in _details(doc):
        records.append(
            {
                MATCH_ID_FIELD: mid,
                "matchTimestamp": ts,
                "period": d.get("period"),
                "gameTime": d.get("gameTime"),
                "type": d.get("type"),
                "team": or_sentinel(d.get("team"), ""),
                "player": d.get("player"),
                "number": coerce_int(d.get("number")),
                "value": or_sentinel(d.get("value")),
                "operationTimestamp": d.get("timestamp"),
            }
        )
    return records


def map_players(doc: Mapping[str, Any], now: Optional[Callable[[], float]] = None) -> List[Record]:
    return _player_records(doc, doc_match_timestamp(doc, now))


def map_teams(doc: Mapping[str, Any], now: Optional[Callable[[], float]] = None) -> List[Record]:
    return _team_records(doc, doc_match_timestamp(doc, now))


def map_details(doc: Mapping[str, Any], now: Optional[Callable[[], float]] = None) -> List[Record]:
    return _detail_records(doc, doc_match_timestamp(doc, now))


def map_game(doc: Mapping[str, Any], now: Optional[Callable[[], float]] = None) -> GameRecords:
    ts = doc_match_timestamp(doc, now)
    return GameRecords(
        match_id=match_id(doc),
        match_timestamp=ts,
        players=_player_records(doc, ts),
        teams=_team_records(doc, ts),
        details=_detail_records(doc, ts),
    )
