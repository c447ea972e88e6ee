"""
Static Token Gate service package.

The gate sits in front of a package registry and authenticates requests
carrying preconfigured static access tokens:
- Matching: bearer credentials looked up in an immutable token table
- Policies: exchange for a cached downstream token, or readonly gating
- Caching: expiring token cache with a background sweep

Structure:
- app.main: FastAPI service and gate wiring.
- app.middleware: ASGI middleware applying gate decisions.
- app.settings: pydantic-settings configuration and YAML loading.
- app.caching: Expiring token cache and single-flight exchange.
- app.domain: Token table, identities, policies and the credential gate.
- app.adapters: Downstream token issuers.
"""
