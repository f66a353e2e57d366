"""Filesystem storage for mail records and attachment blobs."""

from .attachments import AttachmentStore, validate_digest
from .records import MailRecordStore, RecordScan

__all__ = ["AttachmentStore", "MailRecordStore", "RecordScan", "validate_digest"]
