"""asyncio datagram endpoint for the anonymous ingestion gateway.

The gateway touches the filesystem, so each datagram is handled with
``asyncio.to_thread`` and the event loop only moves bytes.
"""

from __future__ import annotations

import asyncio

import structlog

from webmail_core.ingest.gateway import Address, AnonymousIngestGateway, IngestResult, IngestStatus

logger = structlog.get_logger()


class IngestProtocol(asyncio.DatagramProtocol):
    """Receives datagrams and answers each one with a status line."""

    def __init__(self, gateway: AnonymousIngestGateway, max_datagram_bytes: int) -> None:
        self.gateway = gateway
        self.max_datagram_bytes = max_datagram_bytes
        self.transport: asyncio.DatagramTransport | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._accepting = True

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: Address) -> None:
        if not self._accepting:
            self._reply(IngestResult(IngestStatus.ERROR, "Server is shutting down."), addr)
            return
        if len(data) > self.max_datagram_bytes:
            self._reply(IngestResult(IngestStatus.INVALID_FORMAT, "Message too large."), addr)
            return

        task = asyncio.get_running_loop().create_task(self._handle(data, addr))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def error_received(self, exc: Exception) -> None:
        logger.warning("ingest_socket_error", error=str(exc))

    async def _handle(self, data: bytes, addr: Address) -> None:
        try:
            result = await asyncio.to_thread(self.gateway.handle, data, addr)
        except Exception as exc:
            logger.exception("ingest_failed", source=addr[0], error=str(exc))
            result = IngestResult(IngestStatus.ERROR, "Internal error.")
        self._reply(result, addr)

    def _reply(self, result: IngestResult, addr: Address) -> None:
        if self.transport is None or self.transport.is_closing():
            return
        self.transport.sendto(result.render().encode("utf-8"), addr)

    def stop_accepting(self) -> None:
        """Answer further datagrams with an error instead of handling them."""
        self._accepting = False

    async def drain(self) -> None:
        """Wait until no datagram is being processed, including late arrivals."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class IngestServer:
    """Owns the datagram endpoint's lifetime.

    Usage::

        async with IngestServer(gateway, "127.0.0.1", 9999) as server:
            ...
    """

    def __init__(
        self,
        gateway: AnonymousIngestGateway,
        host: str,
        port: int,
        *,
        max_datagram_bytes: int = 65507,
    ) -> None:
        self.gateway = gateway
        self.host = host
        self.port = port
        self.max_datagram_bytes = max_datagram_bytes
        self._transport: asyncio.DatagramTransport | None = None
        self._protocol: IngestProtocol | None = None

    @property
    def address(self) -> Address:
        """Bound (host, port); useful when started on port 0."""
        if self._transport is None:
            raise RuntimeError("ingest server is not running")
        sockname = self._transport.get_extra_info("sockname")
        return sockname[0], sockname[1]

    async def start(self) -> None:
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        self._transport, self._protocol = await loop.create_datagram_endpoint(
            lambda: IngestProtocol(self.gateway, self.max_datagram_bytes),
            local_addr=(self.host, self.port),
        )
        host, port = self.address
        logger.info("ingest_server_started", host=host, port=port)

    async def stop(self) -> None:
        if self._transport is None:
            return
        if self._protocol is not None:
            self._protocol.stop_accepting()
            await self._protocol.drain()
        self._transport.close()
        self._transport = None
        self._protocol = None
        logger.info("ingest_server_stopped")

    async def __aenter__(self) -> IngestServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
