"""Mailbox lifecycle: folders, sending, reading, trashing and purging mail."""

from .service import MailboxService, SendReport
from .usage import MailboxUsage, MailboxUsageAccountant
from .validation import is_valid_username, validate_mail_id, validate_username

__all__ = [
    "MailboxService",
    "MailboxUsage",
    "MailboxUsageAccountant",
    "SendReport",
    "is_valid_username",
    "validate_mail_id",
    "validate_username",
]
