"""
Domain logic for the Static Token Gate.

Static token records, identity construction, the per-request credential
gate and the policies it can apply once a token has been matched.
"""

from .access_tokens import AccessTokenRecord, AccessTokenTable, TokenSecurityViolation
from .credential_gate import CredentialGate
from .decision import GateDecision, GateOutcome
from .exceptions import GateNotActiveError, InsecureTokenError, TokenIssuanceError
from .identity import RemoteUser, create_remote_user
from .policies import ExchangePolicy, GatePolicy, ReadonlyPolicy

__all__ = [
    "AccessTokenRecord",
    "AccessTokenTable",
    "TokenSecurityViolation",
    "CredentialGate",
    "GateDecision",
    "GateOutcome",
    "GateNotActiveError",
    "InsecureTokenError",
    "TokenIssuanceError",
    "RemoteUser",
    "create_remote_user",
    "ExchangePolicy",
    "GatePolicy",
    "ReadonlyPolicy",
]
