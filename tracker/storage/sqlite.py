"""SQLite persistence for monthly rankings and last-known counters."""

from __future__ import annotations

import sqlite3

from tracker.net.protocol import PlayerCounters


def _like_pattern(search: str) -> str:
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqliteStore:
    def __init__(self, path: str):
        self.path = path
        self.conn: sqlite3.Connection | None = None

    def init(self) -> None:
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS rankings (
              name TEXT NOT NULL,
              kills INTEGER NOT NULL DEFAULT 0,
              deaths INTEGER NOT NULL DEFAULT 0,
              points INTEGER NOT NULL DEFAULT 0,
              month_key TEXT NOT NULL,
              PRIMARY KEY (name, month_key)
            );
            CREATE TABLE IF NOT EXISTS last_state (
              server TEXT NOT NULL,
              name TEXT NOT NULL,
              kills INTEGER NOT NULL DEFAULT 0,
              deaths INTEGER NOT NULL DEFAULT 0,
              points INTEGER NOT NULL DEFAULT 0,
              month_key TEXT NOT NULL,
              PRIMARY KEY (server, name, month_key)
            );
            """
        )
        self.conn.commit()

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _db(self) -> sqlite3.Connection:
        if not self.conn:
            raise sqlite3.ProgrammingError("store not initialised")
        return self.conn

    # Rankings

    def add_ranking(self, name: str, kills: int, deaths: int, points: int, month: str) -> None:
        conn = self._db()
        conn.execute(
            """
            INSERT INTO rankings (name, kills, deaths, points, month_key)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(name, month_key) DO UPDATE SET
              kills=kills + excluded.kills,
              deaths=deaths + excluded.deaths,
              points=points + excluded.points
            """,
            (name, int(kills), int(deaths), int(points), month),
        )
        conn.commit()

    def query_ranking(self, month: str, search: str = "", limit: int = 20, offset: int = 0) -> list[dict]:
        sql = "SELECT name, kills, deaths, points FROM rankings WHERE month_key = ?"
        params: list = [month]
        if search:
            sql += " AND name LIKE ? ESCAPE '\\'"
            params.append(_like_pattern(search))
        sql += " ORDER BY points DESC, kills DESC, deaths ASC, name ASC LIMIT ? OFFSET ?"
        params += [int(limit), int(offset)]
        cur = self._db().execute(sql, params)
        return [{"name": r[0], "kills": r[1], "deaths": r[2], "points": r[3]} for r in cur.fetchall()]

    def count_ranking(self, month: str, search: str = "") -> int:
        sql = "SELECT COUNT(*) FROM rankings WHERE month_key = ?"
        params: list = [month]
        if search:
            sql += " AND name LIKE ? ESCAPE '\\'"
            params.append(_like_pattern(search))
        return int(self._db().execute(sql, params).fetchone()[0])

    def list_months(self) -> list[str]:
        cur = self._db().execute("SELECT DISTINCT month_key FROM rankings ORDER BY month_key DESC")
        return [r[0] for r in cur.fetchall()]

    # Last-known counters

    def get_last_state(self, server: str, name: str, month: str) -> PlayerCounters:
        row = self._db().execute(
            "SELECT kills, deaths, points FROM last_state WHERE server = ? AND name = ? AND month_key = ?",
            (server, name, month),
        ).fetchone()
        if not row:
            return PlayerCounters(name)
        return PlayerCounters(name, row[0] or 0, row[1] or 0, row[2] or 0)

    def get_last_states(self, server: str, month: str) -> dict[str, PlayerCounters]:
        cur = self._db().execute(
            "SELECT name, kills, deaths, points FROM last_state WHERE server = ? AND month_key = ?",
            (server, month),
        )
        return {r[0]: PlayerCounters(r[0], r[1] or 0, r[2] or 0, r[3] or 0) for r in cur.fetchall()}

    def put_last_state(self, server: str, name: str, kills: int, deaths: int, points: int, month: str) -> None:
        conn = self._db()
        conn.execute(
            """
            INSERT INTO last_state (server, name, kills, deaths, points, month_key)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(server, name, month_key) DO UPDATE SET
              kills=excluded.kills,
              deaths=excluded.deaths,
              points=excluded.points
            """,
            (server, name, int(kills), int(deaths), int(points), month),
        )
        conn.commit()
