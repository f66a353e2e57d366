"""Integration tests for the datagram ingestion server.

These bind a real UDP socket on the loopback interface.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from webmail_core.cli import serve
from webmail_core.config import Settings
from webmail_core.ingest import AnonymousIngestGateway, DailyQuota, IngestServer
from webmail_core.mailbox import MailboxService
from webmail_core.models import TAG_ANONYMOUS, MailFolder
from webmail_core.sessions import SessionRegistry

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


class _Client(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.replies: asyncio.Queue[bytes] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr) -> None:
        self.replies.put_nowait(data)


async def _exchange(address, payloads: list[bytes]) -> list[str]:
    loop = asyncio.get_running_loop()
    transport, client = await loop.create_datagram_endpoint(_Client, remote_addr=address)
    try:
        replies = []
        for payload in payloads:
            transport.sendto(payload)
            reply = await asyncio.wait_for(client.replies.get(), timeout=5)
            replies.append(reply.decode("utf-8"))
        return replies
    finally:
        transport.close()


async def test_round_trip_over_loopback(mailboxes: MailboxService) -> None:
    gateway = AnonymousIngestGateway(mailboxes, DailyQuota(2))

    async with IngestServer(gateway, "127.0.0.1", 0) as server:
        replies = await _exchange(
            server.address,
            [
                b"bob\nHello\nfrom the network",
                b"not enough lines",
                b"nobody\nHi\nbody",
                b"bob\nSecond\nbody",
                b"bob\nThird\nbody",
            ],
        )

    assert replies[0] == "OK: Message delivered to bob"
    assert replies[1].startswith("ERROR: Invalid format")
    assert replies[2] == "ERROR: Recipient 'nobody' not found."
    assert replies[3] == "OK: Message delivered to bob"
    assert replies[4].startswith("ERROR: Daily limit of 2")

    inbox = mailboxes.list_mails("bob", MailFolder.INBOX)
    assert {m.subject for m in inbox} == {"Hello", "Second"}
    assert all(m.has_tag(TAG_ANONYMOUS) for m in inbox)


async def test_oversized_datagram_is_refused(mailboxes: MailboxService) -> None:
    gateway = AnonymousIngestGateway(mailboxes, DailyQuota())

    async with IngestServer(gateway, "127.0.0.1", 0, max_datagram_bytes=64) as server:
        (reply,) = await _exchange(server.address, [b"bob\nBig\n" + b"x" * 200])

    assert reply == "ERROR: Message too large."
    assert mailboxes.list_mails("bob", MailFolder.INBOX) == []


async def test_serve_sweeps_sessions_and_closes_registry_on_stop(tmp_path, clock) -> None:
    settings = Settings(data_root=tmp_path, session_sweep_interval_seconds=0.01)
    sessions = SessionRegistry(clock=clock)
    sessions.issue("alice", timedelta(seconds=1))
    kept = sessions.issue("bob", timedelta(hours=1))
    clock.advance(seconds=5)

    stop = asyncio.Event()
    serving = asyncio.create_task(serve(settings, sessions, stop, host="127.0.0.1", port=0))
    for _ in range(200):
        if len(sessions) == 1:
            break
        await asyncio.sleep(0.01)

    assert len(sessions) == 1
    assert sessions.validate(kept) == "bob"

    stop.set()
    await asyncio.wait_for(serving, timeout=5)

    assert len(sessions) == 0
