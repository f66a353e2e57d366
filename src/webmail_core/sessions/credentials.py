"""Contract of the credential service consumed by the session registry.

Password hashing and user records live outside this package; only the
verification call is needed here.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CredentialVerifier(Protocol):
    """Anything able to check a username/password pair."""

    def verify(self, username: str, password: str) -> bool:
        """Return True when the credentials are valid."""
        ...
