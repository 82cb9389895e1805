from __future__ import annotations

from typing import Any, Dict, Mapping

from .errors import GameDocumentError

WIN = "win"
LOSS = "loss"


def _score(team: Any, value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        raise GameDocumentError(f"score of team {team!r} must be numeric, got {value!r}") from None


def team_results(team_scores: Mapping[str, Any]) -> Dict[str, str]:
    """Classify every team as win/loss against the top score.

    Teams tied on the top score are all winners.
    """
    if not team_scores:
        return {}
    scores = {team: _score(team, value) for team, value in team_scores.items()}
    top = max(scores.values())
    return {team: WIN if score == top else LOSS for team, score in scores.items()}


def result_for(results: Mapping[str, str], team: Any) -> str:
    if team is None:
        return ""
    return results.get(team, "")
