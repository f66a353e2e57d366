"""Validation of names that end up as path components."""

from __future__ import annotations

import re

from webmail_core.exceptions import InvalidInputError

USERNAME_MAX_LENGTH = 50
MAIL_ID_MAX_LENGTH = 128

_USERNAME_RE = re.compile(rf"[A-Za-z0-9._-]{{1,{USERNAME_MAX_LENGTH}}}")
_MAIL_ID_RE = re.compile(rf"[A-Za-z0-9._-]{{1,{MAIL_ID_MAX_LENGTH}}}")


def _reject_dot_names(kind: str, value: str) -> None:
    # "." and ".." pass the character class but resolve outside the folder.
    if value in {".", ".."}:
        raise InvalidInputError(f"invalid {kind}: {value!r}")


def validate_username(username: str | None) -> str:
    """Return ``username`` unchanged if it is a safe mailbox name.

    Raises:
        InvalidInputError: If the name is empty, too long or contains
            anything other than letters, digits, ``.``, ``_`` and ``-``.
    """

    if not username or not username.strip():
        raise InvalidInputError("username is required")
    if not _USERNAME_RE.fullmatch(username):
        raise InvalidInputError(f"invalid username: {username!r}")
    _reject_dot_names("username", username)
    return username


def is_valid_username(username: str | None) -> bool:
    try:
        validate_username(username)
    except InvalidInputError:
        return False
    return True


def validate_mail_id(mail_id: str | None) -> str:
    """Return ``mail_id`` unchanged if it can be used as a record file stem."""

    if not mail_id:
        raise InvalidInputError("mail id is required")
    if not _MAIL_ID_RE.fullmatch(mail_id):
        raise InvalidInputError(f"invalid mail id: {mail_id!r}")
    _reject_dot_names("mail id", mail_id)
    return mail_id
