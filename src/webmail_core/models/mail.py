"""Mail record model.

One ``Mail`` instance is owned by exactly one (mailbox, folder) pair. Sending
produces independent copies, so nothing here is shared between folders.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from webmail_core.utils import ensure_aware

TAG_UNREAD = "unread"
TAG_ANONYMOUS = "anonymous"


class AttachmentRef(BaseModel):
    """Reference to a blob in the attachment store."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    filename: str = Field(description="Display name chosen by the sender")
    sha256: str = Field(description="Content digest, also the storage key")


class Mail(BaseModel):
    """A single stored message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(default=None, description="Stable identifier, assigned on first persist")
    sender: str | None = Field(default=None, alias="from", description="Sender mailbox name")
    to: list[str] = Field(default_factory=list, description="Recipient mailbox names")
    date: datetime | None = Field(default=None, description="Creation or send time")
    subject: str = Field(default="", description="Subject line")
    content: str = Field(default="", description="Plain text body")
    attachments: list[AttachmentRef] = Field(default_factory=list)
    tags: set[str] = Field(default_factory=set)
    deleted_at: datetime | None = Field(
        default=None,
        alias="deletedAt",
        description="Set only while the mail lives in Trash",
    )

    @field_validator("subject", "content", mode="before")
    @classmethod
    def _none_as_empty_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("to", "attachments", "tags", mode="before")
    @classmethod
    def _none_as_empty_collection(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("date", "deleted_at")
    @classmethod
    def _aware(cls, v: datetime | None) -> datetime | None:
        return ensure_aware(v) if v is not None else None

    @field_serializer("tags")
    def _sorted_tags(self, tags: set[str]) -> list[str]:
        return sorted(tags)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def add_tag(self, tag: str) -> None:
        self.tags.add(tag)

    def remove_tag(self, tag: str) -> None:
        self.tags.discard(tag)

    @property
    def is_unread(self) -> bool:
        return TAG_UNREAD in self.tags

    def to_json(self) -> str:
        """Serialize using the on-disk key names."""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, raw: str | bytes) -> Mail:
        return cls.model_validate_json(raw)
