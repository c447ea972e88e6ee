"""
Unit tests for downstream token issuers.
"""

import json

import httpx
import jwt
import pytest

from service_token_gate.app.adapters.token_issuer import JWTTokenIssuer, RegistryLoginIssuer
from service_token_gate.app.domain.exceptions import TokenIssuanceError
from service_token_gate.app.domain.identity import create_remote_user
from shared.retry import RetryConfig

SIGNING_SECRET = "unit-test-signing-secret-0123456789"


class TestJWTTokenIssuer:
    """Test cases for JWTTokenIssuer."""

    @pytest.mark.asyncio
    async def test_issue_token_claims(self):
        """Test the token carries the identity and an expiry."""
        issuer = JWTTokenIssuer(SIGNING_SECRET, expires_in=120)
        user = create_remote_user("alice", "dev")

        token = await issuer.issue_token(user, "ignored")
        claims = jwt.decode(token, SIGNING_SECRET, algorithms=["HS256"])

        assert claims["sub"] == "alice"
        assert claims["name"] == "alice"
        assert claims["real_groups"] == ["alice", "dev"]
        assert "$authenticated" in claims["groups"]
        assert claims["exp"] - claims["iat"] == 120

    @pytest.mark.asyncio
    async def test_wrong_secret_fails_verification(self):
        """Test tokens only verify with the signing secret."""
        issuer = JWTTokenIssuer(SIGNING_SECRET)
        token = await issuer.issue_token(create_remote_user("alice"), "")

        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(token, "another-signing-secret-0123456789abcdef", algorithms=["HS256"])

    def test_signing_secret_required(self):
        """Test an empty signing secret is rejected."""
        with pytest.raises(ValueError):
            JWTTokenIssuer("")


class TestRegistryLoginIssuer:
    """Test cases for RegistryLoginIssuer."""

    @pytest.fixture
    def retry_config(self):
        """Fast retry configuration."""
        return RetryConfig(max_attempts=2, base_delay=0, jitter=False)

    @pytest.mark.asyncio
    async def test_login_returns_token(self, retry_config):
        """Test a successful login yields the registry token."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"ok": "user 'alice' logged in", "token": "registry-token"})

        issuer = RegistryLoginIssuer(
            "http://registry.local/",
            retry_config=retry_config,
            transport=httpx.MockTransport(handler),
        )
        try:
            token = await issuer.issue_token(create_remote_user("alice"), "alice-password")
        finally:
            await issuer.close()

        assert token == "registry-token"
        request = seen[0]
        assert request.method == "PUT"
        assert request.url.path == "/-/user/org.couchdb.user:alice"
        assert json.loads(request.content) == {"name": "alice", "password": "alice-password"}

    @pytest.mark.asyncio
    async def test_rejected_login(self, retry_config):
        """Test a refused login raises without retrying."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401, json={"error": "bad password"})

        issuer = RegistryLoginIssuer(
            "http://registry.local",
            retry_config=retry_config,
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(TokenIssuanceError) as exc_info:
            await issuer.issue_token(create_remote_user("alice"), "wrong")
        await issuer.close()

        assert exc_info.value.details["status_code"] == 401
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_missing_token_in_response(self, retry_config):
        """Test a login response without a token is an issuance failure."""
        issuer = RegistryLoginIssuer(
            "http://registry.local",
            retry_config=retry_config,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True})),
        )
        with pytest.raises(TokenIssuanceError):
            await issuer.issue_token(create_remote_user("alice"), "pw")
        await issuer.close()

    @pytest.mark.asyncio
    async def test_transport_errors_retried(self, retry_config):
        """Test connection failures are retried, then reported as issuance errors."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        issuer = RegistryLoginIssuer(
            "http://registry.local",
            retry_config=retry_config,
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(TokenIssuanceError) as exc_info:
            await issuer.issue_token(create_remote_user("alice"), "pw")
        await issuer.close()

        assert len(calls) == 2
        assert exc_info.value.details["attempts"] == 2

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self, retry_config):
        """Test a single connection failure is followed by a successful retry."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(201, json={"token": "registry-token"})

        issuer = RegistryLoginIssuer(
            "http://registry.local",
            retry_config=retry_config,
            transport=httpx.MockTransport(handler),
        )
        token = await issuer.issue_token(create_remote_user("alice"), "pw")
        await issuer.close()

        assert token == "registry-token"
        assert len(calls) == 2
