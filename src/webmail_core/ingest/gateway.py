"""Anonymous mail drop over datagrams.

Wire format, UTF-8::

    recipient\\n
    subject\\n
    content (may span several lines)

Accepted messages go straight into the recipient's Inbox tagged
``anonymous``; there is no sender mailbox and no Outbox copy.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from webmail_core.exceptions import InvalidInputError, MailboxNotFoundError, QuotaExceededError
from webmail_core.ingest.quota import DailyQuota
from webmail_core.mailbox import MailboxService, is_valid_username
from webmail_core.models import TAG_ANONYMOUS, Mail

logger = structlog.get_logger()

Address = tuple[str, int]


class IngestStatus(str, Enum):
    """Outcome of one datagram."""

    OK = "ok"
    INVALID_FORMAT = "invalid_format"
    UNKNOWN_RECIPIENT = "unknown_recipient"
    QUOTA_EXCEEDED = "quota_exceeded"
    ERROR = "error"


@dataclass(frozen=True)
class IngestResult:
    status: IngestStatus
    message: str
    mail_id: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status is IngestStatus.OK

    def render(self) -> str:
        """Text sent back to the datagram's origin."""
        prefix = "OK" if self.accepted else "ERROR"
        return f"{prefix}: {self.message}"


@dataclass(frozen=True)
class AnonymousMessage:
    recipient: str
    subject: str
    content: str


def parse_datagram(payload: bytes) -> AnonymousMessage:
    """Split a payload into recipient, subject and content.

    Only the first two newlines separate fields; the rest belongs to the
    content. Surrounding whitespace (including ``\\r``) is stripped from the
    recipient and subject.

    Raises:
        InvalidInputError: If the payload is not UTF-8 or has fewer than
            three fields.
    """

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidInputError("payload is not valid UTF-8") from exc

    parts = text.split("\n", 2)
    if len(parts) < 3:
        raise InvalidInputError("expected recipient\\nsubject\\ncontent")

    recipient = parts[0].strip()
    if not recipient:
        raise InvalidInputError("recipient is empty")

    return AnonymousMessage(recipient=recipient, subject=parts[1].strip(), content=parts[2])


def anonymous_sender(address: Address) -> str:
    host, port = address[0], address[1]
    return f"anonymous@{host}:{port}"


class AnonymousIngestGateway:
    """Turns untrusted datagrams into Inbox deliveries under a daily quota."""

    def __init__(self, mailboxes: MailboxService, quota: DailyQuota) -> None:
        self.mailboxes = mailboxes
        self.quota = quota

    def handle(self, payload: bytes, address: Address) -> IngestResult:
        """Process one datagram from ``address``.

        The quota is taken before anything else and given back when the
        datagram is rejected, so only accepted messages count once settled.
        While requests are in flight the limit applies to accepted plus
        in-flight messages from the same source.
        """

        source = address[0]
        try:
            self.quota.acquire(source)
        except QuotaExceededError as exc:
            logger.warning("ingest_rejected", source=source, status=IngestStatus.QUOTA_EXCEEDED.value)
            return IngestResult(
                IngestStatus.QUOTA_EXCEEDED,
                f"Daily limit of {exc.limit} messages reached for this address.",
            )

        accepted = False
        try:
            result = self._ingest(payload, address)
            accepted = result.accepted
        finally:
            if not accepted:
                self.quota.release(source)

        if accepted:
            logger.info("ingest_accepted", source=source, mail_id=result.mail_id)
        else:
            logger.warning("ingest_rejected", source=source, status=result.status.value)
        return result

    def _ingest(self, payload: bytes, address: Address) -> IngestResult:
        try:
            message = parse_datagram(payload)
        except InvalidInputError as exc:
            return IngestResult(IngestStatus.INVALID_FORMAT, f"Invalid format ({exc}).")

        recipient = message.recipient
        unknown = IngestResult(IngestStatus.UNKNOWN_RECIPIENT, f"Recipient '{recipient}' not found.")
        if not is_valid_username(recipient):
            return unknown

        mail = Mail(
            sender=anonymous_sender(address),
            to=[recipient],
            subject=message.subject,
            content=message.content,
            tags={TAG_ANONYMOUS},
        )
        try:
            delivered = self.mailboxes.deliver(recipient, mail)
        except MailboxNotFoundError:
            return unknown
        except OSError as exc:
            logger.error("ingest_storage_failed", recipient=recipient, error=str(exc))
            return IngestResult(IngestStatus.ERROR, "Message could not be stored.")

        return IngestResult(IngestStatus.OK, f"Message delivered to {recipient}", mail_id=delivered.id)
