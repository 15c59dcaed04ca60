"""In-memory stats store (used when SQLite is disabled, and in tests)."""

from __future__ import annotations

from tracker.net.protocol import PlayerCounters


class MemoryStore:
    def __init__(self):
        self._rankings: dict[tuple[str, str], dict] = {}
        self._last: dict[tuple[str, str, str], PlayerCounters] = {}

    def init(self) -> None:
        pass

    def close(self) -> None:
        pass

    def add_ranking(self, name: str, kills: int, deaths: int, points: int, month: str) -> None:
        cur = self._rankings.get((name, month)) or {"name": name, "kills": 0, "deaths": 0, "points": 0}
        cur["kills"] += int(kills)
        cur["deaths"] += int(deaths)
        cur["points"] += int(points)
        self._rankings[(name, month)] = cur

    def _matching(self, month: str, search: str) -> list[dict]:
        needle = search.lower()
        return [
            dict(row)
            for (name, m), row in self._rankings.items()
            if m == month and needle in name.lower()
        ]

    def query_ranking(self, month: str, search: str = "", limit: int = 20, offset: int = 0) -> list[dict]:
        vals = self._matching(month, search)
        vals.sort(key=lambda r: (-r["points"], -r["kills"], r["deaths"], r["name"]))
        return vals[int(offset) : int(offset) + int(limit)]

    def count_ranking(self, month: str, search: str = "") -> int:
        return len(self._matching(month, search))

    def list_months(self) -> list[str]:
        return sorted({m for _, m in self._rankings}, reverse=True)

    def get_last_state(self, server: str, name: str, month: str) -> PlayerCounters:
        cur = self._last.get((server, name, month))
        if not cur:
            return PlayerCounters(name)
        return PlayerCounters(name, cur.kills, cur.deaths, cur.points)

    def get_last_states(self, server: str, month: str) -> dict[str, PlayerCounters]:
        return {
            name: PlayerCounters(name, c.kills, c.deaths, c.points)
            for (s, name, m), c in self._last.items()
            if s == server and m == month
        }

    def put_last_state(self, server: str, name: str, kills: int, deaths: int, points: int, month: str) -> None:
        self._last[(server, name, month)] = PlayerCounters(name, int(kills), int(deaths), int(points))
