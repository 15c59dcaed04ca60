"""Intervals, timeouts, master directories, persistence."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class MasterDirectory:
    host: str
    port: int = 28900

    @property
    def key(self) -> str:
        return f"{self.host}:{self.port}"


IDENTITY_SCOPES = ("name", "server")


@dataclass
class TrackerConfig:
    # Versions
    service_version: str = "0.1.0"

    # HTTP read API
    host: str = "0.0.0.0"
    port: int = 8080

    # Discovery
    masters: list[MasterDirectory] = field(default_factory=lambda: [MasterDirectory("netpanzer.io", 28900)])
    # 0 disables rediscovery after the first walk.
    discovery_interval: float = 300.0
    master_timeout: float = 10.0
    master_max_bytes: int = 1 << 20

    # Polling
    poll_interval: float = 15.0
    query_timeout: float = 2.0
    max_concurrent_queries: int = 64

    # Aggregation
    flush_delay: float = 0.5
    identity_scope: str = "name"  # name | server
    clamp_points: bool = False

    # Persistence
    sqlite_enabled: bool = True
    sqlite_path: str = "ranking.sqlite3"

    # Read API
    ranking_page_size: int = 20
    stats_limit: int = 500

    log_level: str = "INFO"

    def __post_init__(self):
        if self.identity_scope not in IDENTITY_SCOPES:
            raise ValueError(f"identity_scope must be one of {IDENTITY_SCOPES}, got {self.identity_scope!r}")

    @staticmethod
    def _parse_bool(v: str | None, default: bool) -> bool:
        if v is None:
            return default
        return v.strip().lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _parse_number(v: str | None, default, cast=float):
        if v is None or not v.strip():
            return default
        try:
            return cast(v)
        except ValueError:
            return default

    @staticmethod
    def parse_masters(v: str) -> list[MasterDirectory]:
        out = []
        for item in v.split(","):
            item = item.strip()
            if not item:
                continue
            host, _, port = item.rpartition(":")
            if not host:
                out.append(MasterDirectory(item))
                continue
            try:
                out.append(MasterDirectory(host, int(port)))
            except ValueError:
                continue
        return out

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        cfg = cls()
        env = os.environ
        cfg.host = env.get("NPT_HOST", cfg.host)
        cfg.port = cls._parse_number(env.get("NPT_PORT"), cfg.port, int)
        if env.get("NPT_MASTERS") is not None:
            cfg.masters = cls.parse_masters(env["NPT_MASTERS"])
        cfg.poll_interval = cls._parse_number(env.get("NPT_POLL_INTERVAL"), cfg.poll_interval)
        cfg.discovery_interval = cls._parse_number(env.get("NPT_DISCOVERY_INTERVAL"), cfg.discovery_interval)
        cfg.query_timeout = cls._parse_number(env.get("NPT_QUERY_TIMEOUT"), cfg.query_timeout)
        cfg.master_timeout = cls._parse_number(env.get("NPT_MASTER_TIMEOUT"), cfg.master_timeout)
        cfg.max_concurrent_queries = cls._parse_number(
            env.get("NPT_MAX_CONCURRENT"), cfg.max_concurrent_queries, int
        )
        cfg.flush_delay = cls._parse_number(env.get("NPT_FLUSH_DELAY"), cfg.flush_delay)
        scope = env.get("NPT_IDENTITY_SCOPE")
        if scope and scope.strip().lower() in IDENTITY_SCOPES:
            cfg.identity_scope = scope.strip().lower()
        cfg.clamp_points = cls._parse_bool(env.get("NPT_CLAMP_POINTS"), cfg.clamp_points)
        cfg.sqlite_enabled = cls._parse_bool(env.get("NPT_SQLITE"), cfg.sqlite_enabled)
        cfg.sqlite_path = env.get("NPT_SQLITE_PATH", cfg.sqlite_path)
        cfg.log_level = env.get("NPT_LOG_LEVEL", cfg.log_level).upper()
        return cfg
