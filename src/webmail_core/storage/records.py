"""Durable JSON storage for individual mail records.

Every write goes to a uniquely named ``.tmp`` sibling which is flushed,
fsynced and then swapped onto the final name with ``os.replace``. Readers
therefore see either the previous version or the new one, never a mix.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import structlog
from pydantic import ValidationError

from webmail_core.exceptions import CorruptRecordError, MailNotFoundError, UnreadableRecordError
from webmail_core.models import Mail

logger = structlog.get_logger()

RECORD_SUFFIX = ".json"
TMP_SUFFIX = ".tmp"


@dataclass(frozen=True)
class RecordScan:
    """Outcome of reading one record during a directory scan."""

    path: Path
    mail: Mail | None = None
    error: CorruptRecordError | None = None

    @property
    def ok(self) -> bool:
        return self.mail is not None


class MailRecordStore:
    """Read, write and enumerate mail records on the filesystem."""

    def write(self, path: Path, mail: Mail) -> None:
        """Atomically replace ``path`` with the serialized mail.

        Args:
            path: Final record path.
            mail: Mail to persist.
        """

        path.parent.mkdir(parents=True, exist_ok=True)
        payload = mail.to_json().encode("utf-8")

        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=TMP_SUFFIX,
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def read(self, path: Path) -> Mail:
        """Load a record.

        Raises:
            MailNotFoundError: If the file does not exist.
            CorruptRecordError: If the file cannot be decoded into a Mail.
            UnreadableRecordError: If the file exists but reading it failed.
        """

        try:
            raw = path.read_bytes()
        except FileNotFoundError as exc:
            raise MailNotFoundError(f"Mail record not found: {path}") from exc
        except OSError as exc:
            raise UnreadableRecordError(path, str(exc)) from exc

        try:
            return Mail.from_json(raw)
        except (ValidationError, ValueError) as exc:
            raise CorruptRecordError(path, str(exc)) from exc

    def delete(self, path: Path) -> bool:
        """Remove a record if present. Returns True when a file was removed."""

        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def list_records(self, directory: Path) -> list[Path]:
        """Return record paths in ``directory`` sorted by filename.

        A missing directory yields an empty list. In-flight temp files are
        never returned.
        """

        if not directory.is_dir():
            return []
        return sorted(
            (p for p in directory.iterdir() if p.suffix == RECORD_SUFFIX and p.is_file()),
            key=lambda p: p.name,
        )

    def scan(self, directory: Path) -> Iterator[RecordScan]:
        """Read every record in ``directory``, reporting failures per record.

        A record removed between listing and reading is skipped. A record that
        cannot be read or parsed is yielded with its error so the caller decides what to
        do with it.
        """

        for path in self.list_records(directory):
            try:
                yield RecordScan(path=path, mail=self.read(path))
            except MailNotFoundError:
                continue
            except CorruptRecordError as exc:
                logger.warning("mail_record_corrupt", path=str(path), reason=exc.reason)
                yield RecordScan(path=path, error=exc)
