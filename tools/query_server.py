"""One-shot query of a master directory or a single game server.

Examples:
  python tools/query_server.py master netpanzer.io:28900
  python tools/query_server.py status 203.0.113.7:3030
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from tracker.config import TrackerConfig
from tracker.net.master import fetch_server_list
from tracker.net.protocol import address_key, parse_address
from tracker.net.query import TransportError, query_status


async def _master(target: str, timeout: float) -> dict:
    masters = TrackerConfig.parse_masters(target)
    if len(masters) != 1:
        raise SystemExit(f"bad master address: {target}")
    directory = masters[0]
    addresses = await fetch_server_list(directory, timeout, TrackerConfig().master_max_bytes)
    return {"master": directory.key, "servers": [address_key(a) for a in addresses]}


async def _status(target: str, timeout: float) -> dict:
    addr = parse_address(target)
    if addr is None:
        raise SystemExit(f"bad server address: {target}")
    snap = await query_status(addr, timeout)
    return {"server": address_key(addr), **snap.as_dict()}


def main() -> int:
    ap = argparse.ArgumentParser(description="Query a netPanzer master or game server")
    ap.add_argument("mode", choices=["master", "status"])
    ap.add_argument("target", help="host:port")
    ap.add_argument("--timeout", type=float, default=5.0)
    ap.add_argument("--log-level", default="WARNING")
    args = ap.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    fetch = _master if args.mode == "master" else _status
    try:
        out = asyncio.run(fetch(args.target, args.timeout))
    except TransportError as e:
        logging.error("%s", e)
        return 1
    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
