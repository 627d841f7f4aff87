"""
Shared utilities for the guest gateway.

This package aggregates the common building blocks of the service:

- config: Configuration snapshot via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service shell (middleware, health, metrics)

Do not import from service_* packages into shared/.
"""
