"""Backslash key/value codec for master lists and server status.

Wire format:
  \\key1\\val1\\key2\\val2\\...
Master list records repeat `\\ip\\<ip>\\port\\<port>`; status records mix scalar
keys with indexed player keys (`player_<i>`, `kills_<i>`, ...).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

LIST_QUERY = b"\\list\\gamename\\netpanzer\\final\\"
STATUS_QUERY = b"\\status\\final\\"
FINAL_MARKER = b"\\final\\"

Address = tuple[str, int]

_PLAYER_KEY = re.compile(r"^(player|kills|deaths|points)_(\d+)$")
_BOOKKEEPING_KEYS = {"final", "queryid"}


def address_key(addr: Address) -> str:
    return f"{addr[0]}:{addr[1]}"


def parse_address(text: str) -> Address | None:
    host, _, port = text.rpartition(":")
    port_num = _int(port, default=-1)
    if not host or not (0 < port_num < 65536):
        return None
    return host, port_num


def _int(v: Any, *, default: int = 0) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _text(data: bytes | str) -> str:
    if isinstance(data, bytes):
        return data.decode("latin-1")
    return data


def tokenize(data: bytes | str) -> list[str]:
    text = _text(data)
    if text.startswith("\\"):
        text = text[1:]
    return text.split("\\")


def decode_pairs(data: bytes | str) -> list[tuple[str, str]]:
    tokens = tokenize(data)
    return [(tokens[i], tokens[i + 1]) for i in range(0, len(tokens) - 1, 2)]


def decode_address_list(data: bytes | str) -> list[Address]:
    tokens = tokenize(data)
    out: list[Address] = []
    i = 0
    while i + 3 < len(tokens):
        if tokens[i] == "ip" and tokens[i + 2] == "port":
            port = _int(tokens[i + 3], default=-1)
            if tokens[i + 1] and 0 < port < 65536:
                out.append((tokens[i + 1], port))
            i += 4
        else:
            i += 2
    return out


@dataclass
class PlayerCounters:
    name: str
    kills: int = 0
    deaths: int = 0
    points: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "kills": self.kills, "deaths": self.deaths, "points": self.points}


@dataclass
class StatusSnapshot:
    hostname: str = ""
    mapname: str = ""
    gamestyle: str = ""
    player_count: int = 0
    players: list[PlayerCounters] = field(default_factory=list)
    fields: dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "mapname": self.mapname,
            "gamestyle": self.gamestyle,
            "playerCount": self.player_count,
            "players": [p.as_dict() for p in self.players],
            "fields": dict(self.fields),
        }


def decode_status(data: bytes | str) -> StatusSnapshot:
    scalars: dict[str, str] = {}
    slots: dict[int, dict[str, str]] = {}
    for key, value in decode_pairs(data):
        m = _PLAYER_KEY.match(key)
        if m:
            slots.setdefault(int(m.group(2)), {})[m.group(1)] = value
        elif key not in _BOOKKEEPING_KEYS:
            scalars[key] = value

    players = [
        PlayerCounters(
            name=slot.get("player", ""),
            kills=_int(slot.get("kills")),
            deaths=_int(slot.get("deaths")),
            points=_int(slot.get("points")),
        )
        for _, slot in sorted(slots.items())
    ]
    player_count = _int(scalars.get("numplayers"), default=len(players))
    return StatusSnapshot(
        hostname=scalars.pop("hostname", ""),
        mapname=scalars.pop("mapname", ""),
        gamestyle=scalars.pop("gamestyle", ""),
        player_count=player_count,
        players=players,
        fields=scalars,
    )
