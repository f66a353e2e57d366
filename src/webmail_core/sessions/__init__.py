"""Process-lifetime session tokens."""

from .credentials import CredentialVerifier
from .registry import Session, SessionRegistry

__all__ = ["CredentialVerifier", "Session", "SessionRegistry"]
