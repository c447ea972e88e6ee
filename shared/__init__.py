"""
Shared utilities for the Static Token Gate.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorator for downstream calls
- base_service: FastAPI service skeleton

Do not import from service_* packages into shared/.
"""
