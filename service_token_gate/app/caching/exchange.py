"""
Cache-fronted exchange of static credentials for downstream tokens.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Dict, Optional

from shared.logging import get_logger
from .token_cache import ExpiringTokenCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.token_issuer import TokenIssuer
    from ..domain.access_tokens import AccessTokenRecord
    from ..domain.identity import RemoteUser


class TokenExchange:
    """Issues downstream tokens through ``issuer`` and caches them per static key.

    With ``single_flight`` enabled, concurrent misses for the same key wait on
    one issuance call instead of each calling the issuer.
    """

    def __init__(
        self,
        cache: ExpiringTokenCache,
        issuer: "TokenIssuer",
        *,
        single_flight: bool = True,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.cache = cache
        self.issuer = issuer
        self.single_flight = single_flight
        self.metrics = metrics
        self.logger = get_logger("token_gate.exchange")
        self._in_flight: Dict[str, "asyncio.Task[str]"] = {}

    async def exchange(self, record: "AccessTokenRecord", remote_user: "RemoteUser") -> str:
        """Return a downstream token for ``record``, issuing one on a cache miss."""
        cached = self.cache.get(record.key)
        if cached is not None:
            return cached

        if not self.single_flight:
            return await self._issue(record, remote_user)

        pending = self._in_flight.get(record.key)
        if pending is None:
            pending = asyncio.ensure_future(self._issue(record, remote_user))
            self._in_flight[record.key] = pending
            pending.add_done_callback(lambda task: self._issue_done(record.key, task))
        else:
            self.logger.debug("Joining in-flight token exchange", user=record.user)

        # Cancelling one caller must not cancel the issuance the others share.
        return await asyncio.shield(pending)

    def _issue_done(self, key: str, task: "asyncio.Task[str]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the outcome retrieved when every caller was cancelled.
            task.exception()

    async def _issue(self, record: "AccessTokenRecord", remote_user: "RemoteUser") -> str:
        start = time.perf_counter()
        try:
            token = await self.issuer.issue_token(remote_user, record.secret)
        except Exception:
            self._record_exchange("error", time.perf_counter() - start)
            raise

        self._record_exchange("success", time.perf_counter() - start)
        self.cache.set(record.key, token)
        self.logger.info(
            "Downstream token issued",
            user=record.user,
            ttl_seconds=self.cache.ttl,
        )
        return token

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def _record_exchange(self, status: str, duration: float) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("token_exchanges_total", status=status)
        self.metrics.observe_histogram("token_exchange_duration_seconds", duration)
