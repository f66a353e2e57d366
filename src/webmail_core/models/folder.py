"""Mailbox folders and the rules that differ between them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class FolderPolicy:
    """Folder-specific behaviour expressed as data."""

    accepts_delivery: bool
    tracks_deletion: bool
    purgeable: bool


class MailFolder(str, Enum):
    """The four fixed folders every mailbox owns."""

    INBOX = "inbox"
    OUTBOX = "outbox"
    DRAFT = "draft"
    TRASH = "trash"

    @property
    def dir_name(self) -> str:
        return self.value

    @property
    def policy(self) -> FolderPolicy:
        return _POLICIES[self]


_POLICIES: dict[MailFolder, FolderPolicy] = {
    MailFolder.INBOX: FolderPolicy(accepts_delivery=True, tracks_deletion=False, purgeable=False),
    MailFolder.OUTBOX: FolderPolicy(accepts_delivery=False, tracks_deletion=False, purgeable=False),
    MailFolder.DRAFT: FolderPolicy(accepts_delivery=False, tracks_deletion=False, purgeable=False),
    MailFolder.TRASH: FolderPolicy(accepts_delivery=False, tracks_deletion=True, purgeable=True),
}
