"""Data models for webmail-core.

This module contains Pydantic models for data validation and serialization,
plus the folder enumeration shared by every mailbox.
"""

from webmail_core.models.folder import FolderPolicy, MailFolder
from webmail_core.models.mail import TAG_ANONYMOUS, TAG_UNREAD, AttachmentRef, Mail

__all__ = [
    "AttachmentRef",
    "FolderPolicy",
    "Mail",
    "MailFolder",
    "TAG_ANONYMOUS",
    "TAG_UNREAD",
]
