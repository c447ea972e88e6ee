"""
Shared fixtures for Static Token Gate tests.
"""

import asyncio
from typing import List, Optional

import pytest

from service_token_gate.app.domain.access_tokens import AccessTokenRecord, AccessTokenTable
from service_token_gate.app.domain.identity import RemoteUser

RW_KEY = "rw-token-0123456789abcdef"
RO_KEY = "ro-token-0123456789abcdef"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingIssuer:
    """Token issuer stub recording calls, optionally blocking until released."""

    def __init__(self, token_prefix: str = "downstream", fail_with: Optional[Exception] = None):
        self.token_prefix = token_prefix
        self.fail_with = fail_with
        self.calls: List[str] = []
        self.release = asyncio.Event()
        self.release.set()
        self.closed = False

    async def issue_token(self, remote_user: RemoteUser, secret: str) -> str:
        self.calls.append(remote_user.name)
        await self.release.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return f"{self.token_prefix}-{remote_user.name}-{len(self.calls)}"

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    """Fake clock for expiry tests."""
    return FakeClock()


@pytest.fixture
def token_records():
    """Static token records as they appear in registry config."""
    return [
        {"key": RW_KEY, "user": "alice", "pass": "alice-password", "groups": "dev  ops "},
        {"key": RO_KEY, "user": "ci-bot", "pass": "ci-password", "readonly": True},
    ]


@pytest.fixture
def token_table(token_records):
    """Immutable token table."""
    return AccessTokenTable([AccessTokenRecord.model_validate(r) for r in token_records])
