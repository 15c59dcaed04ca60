"""UDP status query with an explicit deadline."""

from __future__ import annotations

import asyncio

from tracker.net.protocol import STATUS_QUERY, Address, StatusSnapshot, address_key, decode_status


class TransportError(Exception):
    """Connect/send/receive failure or missed deadline talking to a remote peer."""


class _StatusProtocol(asyncio.DatagramProtocol):
    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.response: asyncio.Future[bytes] = loop.create_future()

    def datagram_received(self, data: bytes, addr) -> None:
        if not self.response.done():
            self.response.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self.response.done():
            self.response.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.response.done():
            self.response.set_exception(exc or ConnectionError("socket closed"))


async def query_raw(address: Address, timeout: float, payload: bytes = STATUS_QUERY) -> bytes:
    loop = asyncio.get_running_loop()
    try:
        transport, proto = await loop.create_datagram_endpoint(
            lambda: _StatusProtocol(loop),
            remote_addr=address,
        )
    except OSError as e:
        raise TransportError(f"{address_key(address)}: {e}") from e

    try:
        transport.sendto(payload)
        return await asyncio.wait_for(proto.response, timeout)
    except asyncio.TimeoutError as e:
        raise TransportError(f"{address_key(address)}: no response within {timeout:.1f}s") from e
    except OSError as e:
        raise TransportError(f"{address_key(address)}: {e}") from e
    finally:
        transport.close()


async def query_status(address: Address, timeout: float) -> StatusSnapshot:
    return decode_status(await query_raw(address, timeout))
