"""Mailbox lifecycle engine.

Layout on disk::

    {root}/{username}/{inbox|outbox|draft|trash}/{id}.json

A mail's life within one folder copy is ``created -> (unread) -> read ->
trashed -> purged``. Drafts are a separate branch reached only through
``save_draft``. Moving between folders is always write-then-delete, so each
record has exactly one owner.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

import structlog

from webmail_core.config import Settings
from webmail_core.exceptions import (
    CorruptRecordError,
    InvalidInputError,
    InvalidMailError,
    MailboxNotFoundError,
    MailNotFoundError,
    UnreadableRecordError,
)
from webmail_core.mailbox.validation import is_valid_username, validate_mail_id, validate_username
from webmail_core.models import TAG_UNREAD, Mail, MailFolder
from webmail_core.storage import MailRecordStore
from webmail_core.storage.records import RECORD_SUFFIX
from webmail_core.utils import Clock, utc_now

logger = structlog.get_logger()

DEFAULT_RETENTION_DAYS = 30

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class SendReport:
    """Result of fanning a sent mail out to its recipients."""

    mail: Mail
    delivered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def _newest_first(mails: list[Mail]) -> list[Mail]:
    # Mails without a date sort after every dated mail.
    return sorted(mails, key=lambda m: (m.date is not None, m.date or _OLDEST), reverse=True)


class MailboxService:
    """Business rules for storing and moving mail between folders."""

    def __init__(
        self,
        root: Path,
        records: MailRecordStore | None = None,
        *,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Clock = utc_now,
    ) -> None:
        """Create the engine.

        Args:
            root: Directory that holds one sub-directory per mailbox.
            records: Record store. A default one is created if omitted.
            retention_days: Default Trash retention used by ``purge_trash``.
            clock: Source of "now"; injectable for tests.
        """

        self.root = root
        self.records = records or MailRecordStore()
        self.retention_days = retention_days
        self._clock = clock
        self.root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings: Settings, records: MailRecordStore | None = None) -> MailboxService:
        return cls(
            settings.mailboxes_root,
            records,
            retention_days=settings.trash_retention_days,
        )

    # Paths

    def user_root(self, username: str) -> Path:
        return self.root / validate_username(username)

    def folder_root(self, username: str, folder: MailFolder) -> Path:
        return self.user_root(username) / folder.dir_name

    def mail_path(self, username: str, folder: MailFolder, mail_id: str) -> Path:
        return self.folder_root(username, folder) / f"{validate_mail_id(mail_id)}{RECORD_SUFFIX}"

    # Mailboxes

    def mailbox_exists(self, username: str) -> bool:
        return self.user_root(username).is_dir()

    def create_mailbox(self, username: str) -> None:
        """Create the mailbox and its four folders. Safe to call repeatedly."""

        for folder in MailFolder:
            self.folder_root(username, folder).mkdir(parents=True, exist_ok=True)
        logger.info("mailbox_created", username=username)

    def list_mailboxes(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir() and is_valid_username(p.name))

    def _require_mailbox(self, username: str) -> None:
        if not self.mailbox_exists(username):
            raise MailboxNotFoundError(username)

    # Writes

    def _prepare(self, mail: Mail) -> Mail:
        """Return an independent copy with id and date filled in, outside Trash."""

        prepared = mail.model_copy(deep=True)
        if prepared.id:
            validate_mail_id(prepared.id)
        else:
            prepared.id = str(uuid.uuid4())
        if prepared.date is None:
            prepared.date = self._clock()
        prepared.deleted_at = None
        return prepared

    def send(self, mail: Mail) -> SendReport:
        """Store a mail in the sender's Outbox and an unread copy in each Inbox.

        Every recipient receives its own copy; a failed write for one
        recipient is recorded in the report and does not stop the others.

        Args:
            mail: Mail with ``sender`` and at least one recipient.

        Returns:
            SendReport with the stored Outbox mail and per-recipient outcome.

        Raises:
            InvalidMailError: If sender or recipients are missing.
            InvalidInputError: If a mailbox name is malformed.
            MailboxNotFoundError: If the sender or any recipient has no mailbox.
        """

        if not mail.sender or not mail.sender.strip():
            raise InvalidMailError("from is required")
        if not mail.to:
            raise InvalidMailError("to is required")

        validate_username(mail.sender)
        recipients = list(dict.fromkeys(validate_username(r) for r in mail.to))

        self._require_mailbox(mail.sender)
        for rcpt in recipients:
            self._require_mailbox(rcpt)

        outgoing = self._prepare(mail)
        self.records.write(self.mail_path(outgoing.sender, MailFolder.OUTBOX, outgoing.id), outgoing)

        report = SendReport(mail=outgoing)
        for rcpt in recipients:
            copy = outgoing.model_copy(deep=True)
            copy.add_tag(TAG_UNREAD)
            try:
                self.records.write(self.mail_path(rcpt, MailFolder.INBOX, copy.id), copy)
            except OSError as exc:
                logger.warning("mail_delivery_failed", mail_id=copy.id, recipient=rcpt, error=str(exc))
                report.failed[rcpt] = str(exc)
                continue
            report.delivered.append(rcpt)

        logger.info(
            "mail_sent",
            mail_id=outgoing.id,
            sender=outgoing.sender,
            delivered=len(report.delivered),
            failed=len(report.failed),
        )
        return report

    def deliver(self, recipient: str, mail: Mail, folder: MailFolder = MailFolder.INBOX) -> Mail:
        """Place an unread copy of ``mail`` directly in a recipient folder.

        Used for mail that has no sender mailbox, such as anonymous drops.
        """

        if not folder.policy.accepts_delivery:
            raise InvalidInputError(f"folder {folder.value} does not accept delivery")
        self._require_mailbox(recipient)

        delivered = self._prepare(mail)
        delivered.add_tag(TAG_UNREAD)
        self.records.write(self.mail_path(recipient, folder, delivered.id), delivered)
        logger.info("mail_delivered", mail_id=delivered.id, recipient=recipient, folder=folder.value)
        return delivered

    def save_draft(self, username: str, mail: Mail) -> Mail:
        """Persist a draft, overwriting any draft with the same id."""

        self._require_mailbox(username)
        draft = self._prepare(mail)
        self.records.write(self.mail_path(username, MailFolder.DRAFT, draft.id), draft)
        logger.info("draft_saved", username=username, mail_id=draft.id)
        return draft

    # Reads

    def list_mails(self, username: str, folder: MailFolder) -> list[Mail]:
        """Readable mails of a folder, newest first. Unreadable records are skipped."""

        directory = self.folder_root(username, folder)
        mails = [scan.mail for scan in self.records.scan(directory) if scan.mail is not None]
        return _newest_first(mails)

    def filter_mails(self, username: str, folder: MailFolder, query: str | None) -> list[Mail]:
        """List mails whose sender, subject or a recipient contains ``query``."""

        mails = self.list_mails(username, folder)
        if not query:
            return mails

        needle = query.lower()
        return [
            m
            for m in mails
            if needle in (m.sender or "").lower()
            or needle in m.subject.lower()
            or any(needle in rcpt.lower() for rcpt in m.to)
        ]

    def count_unread(self, username: str, folder: MailFolder) -> int:
        return sum(1 for m in self.list_mails(username, folder) if m.is_unread)

    def _load(self, path: Path) -> Mail:
        try:
            return self.records.read(path)
        except CorruptRecordError as exc:
            raise MailNotFoundError(f"Mail record unreadable: {path}") from exc

    def read_mail(self, username: str, folder: MailFolder, mail_id: str) -> Mail:
        """Return a mail, clearing and persisting its unread tag if set.

        Raises:
            MailNotFoundError: If the record is missing or unreadable.
        """

        path = self.mail_path(username, folder, mail_id)
        mail = self._load(path)
        if mail.is_unread:
            mail.remove_tag(TAG_UNREAD)
            self.records.write(path, mail)
            logger.debug("mail_marked_read", username=username, folder=folder.value, mail_id=mail_id)
        return mail

    def toggle_tag(self, username: str, folder: MailFolder, mail_id: str, tag: str) -> Mail:
        if not tag or not tag.strip():
            raise InvalidInputError("tag is required")

        path = self.mail_path(username, folder, mail_id)
        mail = self._load(path)
        if mail.has_tag(tag):
            mail.remove_tag(tag)
        else:
            mail.add_tag(tag)
        self.records.write(path, mail)
        return mail

    # Trash

    def move_to_trash(self, username: str, folder: MailFolder, mail_id: str) -> Mail | None:
        """Move a mail into Trash and stamp ``deleted_at``.

        The Trash copy is written before the source is removed, so an
        interruption leaves the mail in its original folder.

        Returns:
            The trashed mail, or None when ``folder`` already is Trash.

        Raises:
            MailNotFoundError: If the source record is missing or unreadable.
        """

        validate_username(username)
        if folder.policy.tracks_deletion:
            return None

        source = self.mail_path(username, folder, mail_id)
        mail = self._load(source)
        mail.deleted_at = self._clock()

        self.records.write(self.mail_path(username, MailFolder.TRASH, mail_id), mail)
        self.records.delete(source)

        logger.info("mail_trashed", username=username, folder=folder.value, mail_id=mail_id)
        return mail

    def delete_mail(self, username: str, folder: MailFolder, mail_id: str) -> None:
        """Trash a mail, or remove it for good when it already is in Trash."""

        if not folder.policy.tracks_deletion:
            self.move_to_trash(username, folder, mail_id)
            return

        if not self.records.delete(self.mail_path(username, folder, mail_id)):
            raise MailNotFoundError(f"Mail {mail_id} not found in {folder.value}")
        logger.info("mail_deleted", username=username, mail_id=mail_id)

    def purge_trash(self, username: str, retention_days: int | None = None) -> int:
        """Delete trashed mails older than the retention period.

        Records that cannot be parsed are deleted in the same pass. Records
        that could not be read at all are left for a later pass.

        Args:
            username: Mailbox to purge.
            retention_days: Age in days after which a trashed mail goes;
                defaults to the engine's configured retention.

        Returns:
            Number of records removed.
        """

        days = self.retention_days if retention_days is None else retention_days
        if days < 0:
            raise InvalidInputError("retention_days must not be negative")

        now = self._clock()
        retention = timedelta(days=days)
        removed = 0

        for folder in (f for f in MailFolder if f.policy.purgeable):
            for scan in self.records.scan(self.folder_root(username, folder)):
                if isinstance(scan.error, UnreadableRecordError):
                    continue
                if scan.mail is not None:
                    deleted_at = scan.mail.deleted_at
                    if deleted_at is None or deleted_at + retention >= now:
                        continue
                try:
                    if self.records.delete(scan.path):
                        removed += 1
                except OSError as exc:
                    logger.warning("trash_purge_failed", path=str(scan.path), error=str(exc))

        logger.info("trash_purged", username=username, retention_days=days, removed=removed)
        return removed

    def purge_all_trash(self, retention_days: int | None = None) -> dict[str, int]:
        return {name: self.purge_trash(name, retention_days) for name in self.list_mailboxes()}
