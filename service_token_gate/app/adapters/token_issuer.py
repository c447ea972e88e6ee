"""
Downstream token issuers used by the exchange policy.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote

import httpx
import jwt

from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception
from ..domain.exceptions import TokenIssuanceError
from ..domain.identity import RemoteUser


class TokenIssuer(Protocol):
    """Capability that mints a short-lived token for an identity."""

    async def issue_token(self, remote_user: RemoteUser, secret: str) -> str:
        ...


class JWTTokenIssuer:
    """Signs registry API tokens locally with a shared HS256 secret.

    The signed payload only carries the identity, so the record secret is not
    needed here.
    """

    def __init__(self, signing_secret: str, *, expires_in: int = 7 * 24 * 3600, algorithm: str = "HS256"):
        if not signing_secret:
            raise ValueError("signing_secret is required for JWT token issuance")
        self.signing_secret = signing_secret
        self.expires_in = expires_in
        self.algorithm = algorithm
        self.logger = get_logger("token_gate.issuer.jwt")

    async def issue_token(self, remote_user: RemoteUser, secret: str) -> str:
        now = int(time.time())
        payload: Dict[str, Any] = {
            "sub": remote_user.name,
            "name": remote_user.name,
            "groups": remote_user.groups,
            "real_groups": remote_user.real_groups,
            "iat": now,
            "exp": now + self.expires_in,
        }
        try:
            return jwt.encode(payload, self.signing_secret, algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise TokenIssuanceError("JWT signing failed", details={"error": str(e)}) from e

    async def close(self) -> None:
        """Nothing to release."""


class RegistryLoginIssuer:
    """Obtains a token by logging in to the registry with the record's password."""

    def __init__(
        self,
        registry_url: str,
        *,
        http_timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.registry_url = registry_url.rstrip("/")
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=1.0, max_delay=10.0)
        self.logger = get_logger("token_gate.issuer.registry")
        self._client = httpx.AsyncClient(timeout=http_timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def issue_token(self, remote_user: RemoteUser, secret: str) -> str:
        login = retry_on_exception((httpx.TransportError,), config=self.retry_config)(self._login)
        try:
            return await login(remote_user.name, secret)
        except RetryError as e:
            self.logger.error("Registry unreachable", user=remote_user.name, error=str(e.last_exception))
            raise TokenIssuanceError(
                "Registry unavailable",
                details={"attempts": e.attempts, "error": str(e.last_exception)},
            ) from e

    async def _login(self, name: str, password: str) -> str:
        response = await self._client.put(
            f"{self.registry_url}/-/user/org.couchdb.user:{quote(name, safe='')}",
            json={"name": name, "password": password},
        )

        if response.status_code not in (200, 201):
            raise TokenIssuanceError(
                f"Registry login failed: {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError:
            body = None
        token = body.get("token") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            raise TokenIssuanceError("Registry login response carried no token")
        return token
