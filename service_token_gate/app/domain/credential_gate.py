"""
Per-request credential gate for static access tokens.
"""

from typing import TYPE_CHECKING, Optional

from shared.logging import get_logger, set_remote_user
from .access_tokens import MIN_TOKEN_LENGTH, AccessTokenTable
from .decision import GateDecision
from .exceptions import GateNotActiveError
from .identity import create_remote_user
from .policies import GatePolicy

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def is_auth_header_valid(authorization: str) -> bool:
    """The header must look like ``<scheme> <credential>``."""
    return len(authorization.split(" ")) == 2


def extract_access_token(authorization: str) -> Optional[str]:
    parts = authorization.split(" ")
    if len(parts) != 2:
        return None
    return parts[1] or None


class CredentialGate:
    """Matches bearer credentials against static tokens and applies a policy.

    Credentials that are absent, malformed or unknown are skipped rather than
    rejected so other authentication mechanisms further down the chain still
    get to run.
    """

    def __init__(
        self,
        tokens: AccessTokenTable,
        policy: GatePolicy,
        *,
        enabled: bool = True,
        min_token_length: int = MIN_TOKEN_LENGTH,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.tokens = tokens
        self.policy = policy
        self.enabled = enabled
        self.min_token_length = min_token_length
        self.metrics = metrics
        self.logger = get_logger("token_gate.credential_gate")
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def activate(self) -> None:
        """Validate configuration once before the gate serves any request.

        Raises :class:`InsecureTokenError` when a configured key is shorter
        than ``min_token_length``; the gate then stays inactive.
        """
        if not self.enabled:
            self.logger.info("Static token gate is not enabled")
            self._active = True
            return

        self.tokens.validate_security(self.min_token_length)
        self._active = True
        self.logger.info(
            "Static token gate activated",
            policy=self.policy.name,
            tokens=self.tokens.describe(),
        )

    async def start(self) -> None:
        if self.enabled:
            await self.policy.start()

    async def stop(self) -> None:
        if self.enabled:
            await self.policy.stop()

    async def evaluate(self, authorization: Optional[str], method: str) -> GateDecision:
        """Decide what to do with a request carrying ``authorization``."""
        decision = await self._evaluate(authorization, method)
        if self.metrics:
            self.metrics.increment_counter("gate_decisions_total", outcome=decision.outcome.value)
        return decision

    async def _evaluate(self, authorization: Optional[str], method: str) -> GateDecision:
        if not self.enabled:
            return GateDecision.skip("gate disabled")

        if not self._active:
            raise GateNotActiveError()

        if not authorization:
            self.logger.debug("Skipping, no authorization header set")
            return GateDecision.skip("no authorization header")

        if not is_auth_header_valid(authorization):
            self.logger.debug("Skipping, bad authorization header")
            return GateDecision.skip("malformed authorization header")

        credential = extract_access_token(authorization)
        if not credential:
            self.logger.debug("Skipping, bad access token")
            return GateDecision.skip("empty credential")

        record = self.tokens.lookup(credential)
        if record is None:
            self.logger.debug("Skipping, unknown access token or jwt")
            return GateDecision.skip("unknown credential")

        remote_user = create_remote_user(record.user, record.groups)
        set_remote_user(remote_user.name)
        self.logger.info("User authenticated via static access token", user=record.user)

        return await self.policy.apply(record, remote_user, method)
