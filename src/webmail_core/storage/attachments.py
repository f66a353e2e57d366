"""Content-addressable attachment storage.

Blobs live flat under ``attachments/{sha256}``. The same bytes always map to
the same key, so deduplication is structural.
"""

from __future__ import annotations

import hashlib
import io
import os
import re
import tempfile
from pathlib import Path
from typing import BinaryIO

import structlog

from webmail_core.exceptions import AttachmentNotFoundError, InvalidInputError
from webmail_core.models import AttachmentRef

logger = structlog.get_logger()

_CHUNK_SIZE = 64 * 1024
_DIGEST_RE = re.compile(r"[0-9a-f]{64}")


def validate_digest(digest: str) -> str:
    """Return ``digest`` if it is a lowercase hex SHA-256, else raise."""

    if not isinstance(digest, str) or not _DIGEST_RE.fullmatch(digest):
        raise InvalidInputError(f"invalid attachment digest: {digest!r}")
    return digest


class AttachmentStore:
    """Deduplicating blob store keyed by SHA-256."""

    def __init__(self, root: Path) -> None:
        """Create a store.

        Args:
            root: Directory holding the blobs. Created if missing.
        """

        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, digest: str) -> Path:
        return self.root / validate_digest(digest)

    def exists(self, digest: str) -> bool:
        return self.path_for(digest).is_file()

    def size(self, digest: str) -> int | None:
        """Stored size in bytes, or None when the blob is missing."""

        try:
            return self.path_for(digest).stat().st_size
        except FileNotFoundError:
            return None

    def put(self, data: bytes | BinaryIO) -> str:
        """Store content and return its digest.

        The input is hashed while it is copied into a temp file, so a stream
        is never fully held in memory. If the digest is already present the
        temp file is discarded; otherwise it is renamed onto the digest. Two
        callers racing on the same content both end with identical bytes in
        place.

        Args:
            data: Raw bytes or a binary stream positioned at the start.

        Returns:
            Lowercase hex SHA-256 of the content.
        """

        stream: BinaryIO = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        h = hashlib.sha256()

        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".upload-", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
                    h.update(chunk)
                    out.write(chunk)
                out.flush()
                os.fsync(out.fileno())

            digest = h.hexdigest()
            target = self.root / digest
            if target.exists():
                tmp_path.unlink(missing_ok=True)
                logger.debug("attachment_deduplicated", sha256=digest)
            else:
                os.replace(tmp_path, target)
                logger.info("attachment_stored", sha256=digest, size=target.stat().st_size)
            return digest
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def put_ref(self, data: bytes | BinaryIO, filename: str) -> AttachmentRef:
        return AttachmentRef(filename=filename, sha256=self.put(data))

    def put_file(self, source: Path, filename: str | None = None) -> AttachmentRef:
        """Store a file from disk under its content digest.

        Args:
            source: File to copy into the store.
            filename: Display name; defaults to the source file name.
        """

        with source.open("rb") as fh:
            digest = self.put(fh)
        return AttachmentRef(filename=filename or source.name, sha256=digest)

    def get(self, digest: str) -> bytes:
        """Return the stored bytes.

        Raises:
            InvalidInputError: If the digest is malformed.
            AttachmentNotFoundError: If nothing is stored under the digest.
        """

        try:
            return self.path_for(digest).read_bytes()
        except FileNotFoundError as exc:
            raise AttachmentNotFoundError(f"Attachment not found: {digest}") from exc
