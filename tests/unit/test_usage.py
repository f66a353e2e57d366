"""Unit tests for mailbox usage accounting."""

from __future__ import annotations

from webmail_core.mailbox import MailboxService, MailboxUsageAccountant
from webmail_core.models import AttachmentRef, Mail, MailFolder
from webmail_core.storage import AttachmentStore


def _record_bytes(mailboxes: MailboxService, username: str) -> int:
    return sum(
        p.stat().st_size
        for folder in MailFolder
        for p in mailboxes.folder_root(username, folder).glob("*.json")
    )


def test_shared_attachment_counted_once(mailboxes: MailboxService, attachments: AttachmentStore) -> None:
    blob = b"x" * 1000
    ref = attachments.put_ref(blob, "logo.png")
    mailboxes.send(Mail(sender="alice", to=["bob"], attachments=[ref, ref]))
    mailboxes.send(Mail(sender="carol", to=["bob"], attachments=[AttachmentRef(filename="copy.png", sha256=ref.sha256)]))
    mailboxes.save_draft("bob", Mail(attachments=[ref]))

    usage = MailboxUsageAccountant(mailboxes, attachments).usage("bob")

    assert usage.attachment_bytes == len(blob)
    assert usage.record_bytes == _record_bytes(mailboxes, "bob")
    assert usage.total == usage.record_bytes + len(blob)


def test_distinct_attachments_are_summed(mailboxes: MailboxService, attachments: AttachmentStore) -> None:
    a = attachments.put_ref(b"a" * 10, "a.bin")
    b = attachments.put_ref(b"b" * 20, "b.bin")
    mailboxes.send(Mail(sender="alice", to=["bob"], attachments=[a, b]))

    accountant = MailboxUsageAccountant(mailboxes, attachments)

    assert accountant.usage("alice").attachment_bytes == 30
    assert accountant.compute_size("alice") == _record_bytes(mailboxes, "alice") + 30


def test_missing_blobs_corrupt_records_and_bad_digests_are_skipped(
    mailboxes: MailboxService, attachments: AttachmentStore
) -> None:
    mailboxes.save_draft(
        "bob",
        Mail(
            attachments=[
                AttachmentRef(filename="gone.pdf", sha256="d" * 64),
                AttachmentRef(filename="evil", sha256="../../etc/passwd"),
            ]
        ),
    )
    (mailboxes.folder_root("bob", MailFolder.INBOX) / "broken.json").write_text("{{", encoding="utf-8")

    usage = MailboxUsageAccountant(mailboxes, attachments).usage("bob")

    assert usage.attachment_bytes == 0
    # the corrupt file still occupies disk space
    assert usage.record_bytes == _record_bytes(mailboxes, "bob")


def test_empty_mailbox_uses_nothing(mailboxes: MailboxService, attachments: AttachmentStore) -> None:
    assert MailboxUsageAccountant(mailboxes, attachments).compute_size("carol") == 0
