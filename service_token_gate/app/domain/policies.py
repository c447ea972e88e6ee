"""
Policies applied once a static access token has been matched.
"""

from abc import ABC, abstractmethod

from shared.logging import get_logger
from ..caching.exchange import TokenExchange
from .access_tokens import AccessTokenRecord
from .decision import GateDecision, GateOutcome
from .identity import RemoteUser

READ_METHODS = frozenset({"HEAD", "GET"})


class GatePolicy(ABC):
    """Strategy deciding what happens to a request with a matched token."""

    name = "base"

    @abstractmethod
    async def apply(self, record: AccessTokenRecord, remote_user: RemoteUser, method: str) -> GateDecision:
        """Decide the outcome for a request whose token matched ``record``."""

    async def start(self) -> None:
        """Acquire background resources. Called on service startup."""

    async def stop(self) -> None:
        """Release background resources. Called on service shutdown."""


class ExchangePolicy(GatePolicy):
    """Swap the static credential for a cached downstream token."""

    name = "exchange"

    def __init__(self, exchange: TokenExchange):
        self.exchange = exchange
        self.logger = get_logger("token_gate.policy.exchange")

    async def apply(self, record: AccessTokenRecord, remote_user: RemoteUser, method: str) -> GateDecision:
        try:
            token = await self.exchange.exchange(record, remote_user)
        except Exception as e:
            self.logger.warning("Token exchange failed", user=record.user, error=str(e))
            return GateDecision(
                GateOutcome.UNAUTHORIZED,
                "token exchange failed",
                remote_user=remote_user,
            )

        return GateDecision(
            GateOutcome.AUTHENTICATED,
            "static token exchanged",
            remote_user=remote_user,
            authorization=f"Bearer {token}",
        )

    async def start(self) -> None:
        await self.exchange.cache.start_sweep()

    async def stop(self) -> None:
        await self.exchange.cache.stop_sweep()
        self.exchange.cache.clear()


class ReadonlyPolicy(GatePolicy):
    """Attach the identity directly, refusing writes for readonly tokens.

    Relies on clients never using HEAD or GET for write operations.
    """

    name = "readonly"

    def __init__(self):
        self.logger = get_logger("token_gate.policy.readonly")

    async def apply(self, record: AccessTokenRecord, remote_user: RemoteUser, method: str) -> GateDecision:
        if record.readonly and method.upper() not in READ_METHODS:
            remote_user.error = "forbidden"
            self.logger.warning(
                "Write access denied for readonly access token",
                user=record.user,
                method=method,
            )
            return GateDecision(
                GateOutcome.FORBIDDEN,
                "readonly token used for write request",
                remote_user=remote_user,
            )

        return GateDecision(
            GateOutcome.AUTHENTICATED,
            "static token accepted",
            remote_user=remote_user,
        )
