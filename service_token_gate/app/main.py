"""
Static Token Gate service.
"""

from typing import Any, Dict, Optional

from fastapi import Request

from shared.base_service import BaseService
from shared.errors import AuthenticationError, ConfigurationError
from shared.metrics import MetricsCollector
from .adapters.token_issuer import JWTTokenIssuer, RegistryLoginIssuer, TokenIssuer
from .caching import ExpiringTokenCache, TokenExchange
from .domain.access_tokens import AccessTokenTable
from .domain.credential_gate import CredentialGate
from .domain.policies import ExchangePolicy, GatePolicy, ReadonlyPolicy
from .middleware import StaticTokenMiddleware
from .settings import SERVICE_NAME, GateSettings, load_gate_settings


def build_token_issuer(settings: GateSettings) -> TokenIssuer:
    """Create the downstream issuer selected by ``settings.token_issuer``."""
    if settings.token_issuer == "registry":
        return RegistryLoginIssuer(settings.registry_url)

    if not settings.jwt_secret:
        raise ConfigurationError(
            "jwt_secret is required when token_issuer is 'jwt'",
            details={"setting": "TOKENGATE_JWT_SECRET"},
        )
    return JWTTokenIssuer(settings.jwt_secret, expires_in=settings.jwt_expires_in_seconds)


def build_credential_gate(
    settings: GateSettings,
    *,
    metrics: Optional[MetricsCollector] = None,
    issuer: Optional[TokenIssuer] = None,
) -> CredentialGate:
    """Wire the token table, policy and cache described by ``settings``."""
    tokens = AccessTokenTable(settings.static_access_tokens)
    enabled = settings.is_plugin_enabled()

    policy: GatePolicy
    if settings.policy == "readonly":
        policy = ReadonlyPolicy()
    else:
        cache = ExpiringTokenCache(
            ttl=settings.token_cache_ttl_seconds,
            sweep_interval=settings.token_cache_sweep_interval_seconds,
            metrics=metrics,
        )
        if issuer is None and enabled:
            issuer = build_token_issuer(settings)
        policy = ExchangePolicy(
            TokenExchange(cache, issuer, single_flight=settings.single_flight, metrics=metrics)
        )

    return CredentialGate(
        tokens,
        policy,
        enabled=enabled,
        min_token_length=settings.min_token_length,
        metrics=metrics,
    )


class TokenGateService(BaseService):
    """Registry front service authenticating static access tokens."""

    def __init__(self, settings: Optional[GateSettings] = None, *, issuer: Optional[TokenIssuer] = None):
        settings = settings or load_gate_settings()
        super().__init__(SERVICE_NAME, settings.port, config=settings)
        self.settings = settings

        self.gate = build_credential_gate(settings, metrics=self.metrics, issuer=issuer)
        # Fails fast on insecure tokens before any route is reachable.
        self.gate.activate()
        self.app.add_middleware(StaticTokenMiddleware, gate=self.gate)

        @self.app.on_event("startup")
        async def _startup():
            await self.gate.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.gate.stop()
            close = getattr(self._issuer, "close", None)
            if close is not None:
                await close()

        self._setup_gate_routes()
        self.app.state.token_gate_service = self

    @property
    def _issuer(self) -> Optional[TokenIssuer]:
        if isinstance(self.gate.policy, ExchangePolicy):
            return self.gate.policy.exchange.issuer
        return None

    @property
    def token_cache(self) -> Optional[ExpiringTokenCache]:
        if isinstance(self.gate.policy, ExchangePolicy):
            return self.gate.policy.exchange.cache
        return None

    def _setup_gate_routes(self):
        """Set up gate-specific routes."""

        @self.app.get("/-/whoami")
        async def whoami(request: Request):
            """Name of the user authenticated for this request."""
            remote_user = getattr(request.state, "remote_user", None)
            if remote_user is None:
                raise AuthenticationError("Not authenticated")
            return {"username": remote_user.name}

        @self.app.get("/-/static-token/cache")
        async def cache_stats():
            """Token cache statistics."""
            cache = self.token_cache
            if cache is None:
                return {"policy": self.gate.policy.name, "cache": None}
            return {"policy": self.gate.policy.name, "cache": cache.stats()}

    async def _check_dependencies(self) -> Dict[str, Any]:
        dependencies: Dict[str, Any] = {
            "gate": "enabled" if self.gate.enabled else "disabled",
            "policy": self.gate.policy.name,
        }
        cache = self.token_cache
        if cache is not None and self.gate.enabled:
            dependencies["token_cache_sweep"] = "running" if cache.sweep_running else "stopped"
        return dependencies


def create_app():
    """Create FastAPI application."""
    service = TokenGateService()
    return service.app


def main():
    """Run the service with settings from the environment."""
    service = TokenGateService()
    service.run()


if __name__ == "__main__":
    main()
