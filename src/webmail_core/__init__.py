"""webmail-core - filesystem mail storage with an anonymous datagram drop.

This package stores mail for local mailboxes as JSON records, deduplicates
attachments by content digest, manages the inbox/outbox/draft/trash
lifecycle and accepts rate-limited anonymous mail over datagrams.
"""

__version__ = "0.1.0"

from webmail_core.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
