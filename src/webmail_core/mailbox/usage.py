"""Disk usage accounting per mailbox."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from webmail_core.exceptions import InvalidInputError
from webmail_core.mailbox.service import MailboxService
from webmail_core.models import MailFolder
from webmail_core.storage import AttachmentStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class MailboxUsage:
    """Bytes used by one mailbox."""

    record_bytes: int
    attachment_bytes: int

    @property
    def total(self) -> int:
        return self.record_bytes + self.attachment_bytes


class MailboxUsageAccountant:
    """Compute the space a mailbox occupies, counting each attachment blob once."""

    def __init__(self, mailboxes: MailboxService, attachments: AttachmentStore) -> None:
        self.mailboxes = mailboxes
        self.attachments = attachments

    def usage(self, username: str) -> MailboxUsage:
        """Measure record files and distinct referenced attachments.

        Record sizes are taken for every record file in all four folders.
        Attachment bytes are summed once per distinct digest referenced from
        any readable record. Unreadable records, malformed digests and missing
        blobs are skipped.
        """

        records = self.mailboxes.records
        record_bytes = 0
        digests: set[str] = set()

        for folder in MailFolder:
            directory = self.mailboxes.folder_root(username, folder)
            for path in records.list_records(directory):
                try:
                    record_bytes += path.stat().st_size
                except FileNotFoundError:
                    continue

            for scan in records.scan(directory):
                if scan.mail is None:
                    continue
                digests.update(ref.sha256 for ref in scan.mail.attachments if ref.sha256)

        attachment_bytes = 0
        for digest in digests:
            try:
                size = self.attachments.size(digest)
            except InvalidInputError:
                logger.warning("attachment_digest_invalid", username=username, sha256=digest)
                continue
            if size is not None:
                attachment_bytes += size

        return MailboxUsage(record_bytes=record_bytes, attachment_bytes=attachment_bytes)

    def compute_size(self, username: str) -> int:
        return self.usage(username).total
