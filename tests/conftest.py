"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from webmail_core.mailbox import MailboxService
from webmail_core.models import Mail
from webmail_core.storage import AttachmentStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def mailboxes(tmp_path, clock) -> MailboxService:
    """Engine rooted in a temp dir with alice, bob and carol created."""
    service = MailboxService(tmp_path / "mailboxes", clock=clock)
    for name in ("alice", "bob", "carol"):
        service.create_mailbox(name)
    return service


@pytest.fixture
def attachments(tmp_path) -> AttachmentStore:
    return AttachmentStore(tmp_path / "attachments")


@pytest.fixture
def sample_mail() -> Mail:
    """Provide a mail from alice to bob and carol."""
    return Mail(
        sender="alice",
        to=["bob", "carol"],
        subject="Weekly sync",
        content="Agenda:\n1. Storage\n2. Trash retention\n",
    )


@pytest.fixture
def failing_reads(monkeypatch) -> dict[str, OSError]:
    """Make ``Path.read_bytes`` raise for the file names put in the returned dict."""
    broken: dict[str, OSError] = {}
    real_read_bytes = Path.read_bytes

    def read_bytes(self: Path) -> bytes:
        if self.name in broken:
            raise broken[self.name]
        return real_read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", read_bytes)
    return broken
