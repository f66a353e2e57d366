"""Custom exceptions for webmail-core."""

from pathlib import Path


class WebmailError(Exception):
    """Base exception for all webmail-core errors."""


class InvalidInputError(WebmailError):
    """Exception raised for malformed usernames, mail ids or digests."""


class InvalidMailError(InvalidInputError):
    """Exception raised when a mail lacks a required field."""


class NotFoundError(WebmailError):
    """Exception raised when a mailbox, mail or attachment does not exist."""


class MailboxNotFoundError(NotFoundError):
    """Exception raised when a mailbox has not been created."""

    def __init__(self, username: str) -> None:
        super().__init__(f"Mailbox does not exist: {username}")
        self.username = username


class MailNotFoundError(NotFoundError):
    """Exception raised when a mail record is absent from a folder."""


class AttachmentNotFoundError(NotFoundError):
    """Exception raised when no blob is stored under a digest."""


class CorruptRecordError(WebmailError):
    """Exception raised when a mail record cannot be parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Corrupt mail record {path}: {reason}")
        self.path = path
        self.reason = reason


class UnreadableRecordError(CorruptRecordError):
    """Exception raised when a mail record exists but reading it failed."""


class QuotaExceededError(WebmailError):
    """Exception raised when a source used up its daily ingestion quota."""

    def __init__(self, source: str, limit: int) -> None:
        super().__init__(f"Daily limit of {limit} messages reached for {source}")
        self.source = source
        self.limit = limit


class ConfigurationError(WebmailError):
    """Exception raised for configuration related errors."""
