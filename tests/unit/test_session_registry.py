"""Unit tests for the in-memory session registry."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from webmail_core.config import Settings
from webmail_core.exceptions import InvalidInputError
from webmail_core.sessions import CredentialVerifier, SessionRegistry


class StaticCredentials:
    def __init__(self, accounts: dict[str, str]) -> None:
        self.accounts = accounts

    def verify(self, username: str, password: str) -> bool:
        return self.accounts.get(username) == password


@pytest.fixture
def registry(clock) -> SessionRegistry:
    return SessionRegistry(clock=clock)


class TestSessionRegistry:
    """Test suite for SessionRegistry."""

    def test_issue_and_validate(self, registry: SessionRegistry) -> None:
        token = registry.issue("alice")

        assert registry.validate(token) == "alice"
        assert len(registry) == 1

    def test_tokens_are_unique_and_long(self, registry: SessionRegistry) -> None:
        tokens = {registry.issue("alice") for _ in range(50)}

        assert len(tokens) == 50
        assert all(len(t) >= 40 for t in tokens)

    def test_unknown_and_empty_tokens_are_invalid(self, registry: SessionRegistry) -> None:
        assert registry.validate("nope") is None
        assert registry.validate("") is None
        assert registry.validate(None) is None

    def test_expired_token_is_evicted_on_lookup(self, registry: SessionRegistry, clock) -> None:
        token = registry.issue("alice", timedelta(minutes=5))
        clock.advance(minutes=6)

        assert registry.validate(token) is None
        assert len(registry) == 0

    def test_token_valid_until_expiry(self, registry: SessionRegistry, clock) -> None:
        token = registry.issue("alice", timedelta(minutes=5))
        clock.advance(minutes=5)

        assert registry.validate(token) == "alice"

    def test_revoke_is_idempotent(self, registry: SessionRegistry) -> None:
        token = registry.issue("alice")

        registry.revoke(token)
        registry.revoke(token)
        registry.revoke(None)

        assert registry.validate(token) is None

    def test_sweep_removes_only_expired(self, registry: SessionRegistry, clock) -> None:
        short = registry.issue("alice", timedelta(minutes=1))
        long = registry.issue("bob", timedelta(hours=1))
        clock.advance(minutes=2)

        assert registry.sweep() == 1
        assert len(registry) == 1
        assert registry.validate(long) == "bob"
        assert registry.validate(short) is None

    def test_rejects_non_positive_ttl(self, registry: SessionRegistry) -> None:
        with pytest.raises(InvalidInputError):
            registry.issue("alice", timedelta(0))

    def test_login_uses_default_or_extended_ttl(self, registry: SessionRegistry, clock) -> None:
        creds = StaticCredentials({"alice": "s3cret"})
        assert isinstance(creds, CredentialVerifier)

        short = registry.login(creds, "alice", "s3cret")
        remembered = registry.login(creds, "alice", "s3cret", remember=True)
        assert registry.login(creds, "alice", "wrong") is None

        clock.advance(hours=2)
        assert registry.validate(short) is None
        assert registry.validate(remembered) == "alice"

    def test_from_settings(self) -> None:
        registry = SessionRegistry.from_settings(
            Settings(session_ttl_minutes=5, session_extended_ttl_minutes=10)
        )

        assert registry.default_ttl == timedelta(minutes=5)
        assert registry.extended_ttl == timedelta(minutes=10)

    def test_close_drops_everything(self, registry: SessionRegistry) -> None:
        registry.issue("alice")
        registry.close()

        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_run_sweeper_sweeps_periodically(self, registry: SessionRegistry, clock) -> None:
        registry.issue("alice", timedelta(seconds=1))
        clock.advance(seconds=2)

        task = asyncio.create_task(registry.run_sweeper(0.01))
        try:
            for _ in range(100):
                if len(registry) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert len(registry) == 0
