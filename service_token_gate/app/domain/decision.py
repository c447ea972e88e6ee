"""
Outcome of a single credential gate evaluation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .identity import RemoteUser


class GateOutcome(str, Enum):
    """What the gate decided for a request."""
    SKIP = "skip"
    AUTHENTICATED = "authenticated"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"


_STATUS_CODES = {
    GateOutcome.UNAUTHORIZED: 401,
    GateOutcome.FORBIDDEN: 403,
}


@dataclass(frozen=True)
class GateDecision:
    """Decision plus whatever the transport must apply to the request.

    ``authorization`` is set when the outgoing ``Authorization`` header must be
    replaced with a downstream token.
    """

    outcome: GateOutcome
    reason: str
    remote_user: Optional[RemoteUser] = None
    authorization: Optional[str] = None

    @classmethod
    def skip(cls, reason: str) -> "GateDecision":
        return cls(GateOutcome.SKIP, reason)

    @property
    def status_code(self) -> Optional[int]:
        return _STATUS_CODES.get(self.outcome)

    @property
    def rejected(self) -> bool:
        return self.status_code is not None
