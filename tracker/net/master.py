"""Master directory client: sequential TCP walk yielding game server addresses."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable

from tracker.config import MasterDirectory
from tracker.net.protocol import FINAL_MARKER, LIST_QUERY, Address, decode_address_list
from tracker.net.query import TransportError

logger = logging.getLogger(__name__)

_CHUNK = 4096
_GROUP = re.compile(rb"\\ip\\[^\\]+\\port\\\d+\\")


def _complete_groups(data: bytes) -> bytes:
    """Cut a cut-off stream back to its last complete ip/port group."""
    tail = data.rfind(b"\\ip\\")
    if tail < 0:
        return data
    m = _GROUP.match(data, tail)
    return data[: m.end()] if m else data[:tail]


async def _read_response(reader: asyncio.StreamReader, max_bytes: int, timeout: float, key: str) -> bytes:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    buf = bytearray()
    while len(buf) < max_bytes:
        remaining = deadline - loop.time()
        try:
            if remaining <= 0:
                raise asyncio.TimeoutError()
            chunk = await asyncio.wait_for(reader.read(_CHUNK), remaining)
        except asyncio.TimeoutError:
            if not buf:
                raise
            logger.warning("master %s still open after %.1fs; using %d bytes received", key, timeout, len(buf))
            return _complete_groups(bytes(buf))
        if not chunk:
            return bytes(buf)
        buf += chunk
        if buf.endswith(FINAL_MARKER):
            return bytes(buf)
    logger.warning("master %s response exceeds %d bytes; truncating", key, max_bytes)
    return _complete_groups(bytes(buf[:max_bytes]))


async def fetch_server_list(directory: MasterDirectory, timeout: float, max_bytes: int) -> list[Address]:
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(directory.host, directory.port), timeout
        )
    except (OSError, asyncio.TimeoutError) as e:
        raise TransportError(f"{directory.key}: connect failed: {e!r}") from e

    try:
        writer.write(LIST_QUERY)
        await writer.drain()
        data = await _read_response(reader, max_bytes, timeout, directory.key)
    except (OSError, asyncio.TimeoutError) as e:
        raise TransportError(f"{directory.key}: read failed: {e!r}") from e
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

    return decode_address_list(data)


class DiscoveryClient:
    def __init__(
        self,
        masters: list[MasterDirectory],
        registry,
        *,
        timeout: float = 10.0,
        max_bytes: int = 1 << 20,
        on_complete: Callable[[], Awaitable[None]] | None = None,
    ):
        self.masters = list(masters)
        self.registry = registry
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.on_complete = on_complete
        self.visited: dict[str, MasterDirectory] = {}

    async def run(self) -> int:
        """Walk every master once; returns how many new servers were registered."""
        stack = list(self.masters)
        added = 0
        while stack:
            directory = stack.pop()
            self.visited[directory.key] = directory
            try:
                addresses = await fetch_server_list(directory, self.timeout, self.max_bytes)
            except TransportError as e:
                logger.warning("master %s unavailable: %s", directory.key, e)
                continue
            logger.info("master %s listed %d servers", directory.key, len(addresses))
            for addr in addresses:
                if self.registry.register(addr, directory):
                    added += 1

        logger.info("discovery finished: %d new, %d known", added, len(self.registry))
        if self.on_complete:
            await self.on_complete()
        return added
