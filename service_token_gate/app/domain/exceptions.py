"""
Exceptions raised by the credential gate.
"""

from typing import Any, Dict, Optional, Sequence, TYPE_CHECKING

from shared.errors import AccessLayerException, ConfigurationError, ExternalServiceError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .access_tokens import TokenSecurityViolation


class InsecureTokenError(ConfigurationError):
    """One or more static access tokens are too short to be served."""

    def __init__(self, violations: Sequence["TokenSecurityViolation"]):
        self.violations = list(violations)
        super().__init__(
            f"{len(self.violations)} insecure static access token(s) configured",
            details={"violations": [v.as_dict() for v in self.violations]},
        )


class GateNotActiveError(AccessLayerException):
    """The gate was asked to evaluate a request before activation."""

    def __init__(self, message: str = "Credential gate has not been activated"):
        super().__init__("GATE_NOT_ACTIVE", message)


class TokenIssuanceError(ExternalServiceError):
    """The downstream token issuer refused or failed to issue a token."""

    def __init__(self, message: str = "Token issuance failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("token_issuer", message, details)
