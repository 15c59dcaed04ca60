"""Derived per-player statistics computed from the monthly ranking.

There is no games-played counter, so "actions" (kills + deaths) stands in as
the activity denominator.
"""

from __future__ import annotations

from typing import Any

METRICS = {
    "activityRate": "Recorded actions (kills + deaths) in the month.",
    "expertRate": "Share of actions that are kills (0..1).",
    "killerRate": "Kills per 100 actions.",
    "efficiencyRate": "Points per action.",
    "champRate": "Points per kill.",
    "strength": "Composite index: 2*kills + points - 0.5*deaths.",
}


def calculate_stats(row: dict[str, Any]) -> dict[str, Any]:
    kills = int(row.get("kills") or 0)
    deaths = int(row.get("deaths") or 0)
    points = int(row.get("points") or 0)
    actions = kills + deaths

    return {
        "name": row.get("name", ""),
        "kills": kills,
        "deaths": deaths,
        "points": points,
        "actionCount": actions,
        "activityRate": actions,
        "expertRate": round(kills / actions, 3) if actions else 0.0,
        "killerRate": round(kills / actions * 100, 2) if actions else 0.0,
        "efficiencyRate": round(points / actions, 2) if actions else 0.0,
        "champRate": round(points / kills, 2) if kills else 0.0,
        "strength": round(2 * kills + points - 0.5 * deaths, 2),
    }


def player_stats(store, month: str, search: str = "", limit: int = 500) -> list[dict[str, Any]]:
    return [calculate_stats(r) for r in store.query_ranking(month, search, limit, 0)]


def describe_metrics() -> dict[str, str]:
    return dict(METRICS)
