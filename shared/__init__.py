"""
Shared utilities for the PoP Access service.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and their HTTP rendering
- base_service: FastAPI application scaffolding
- test_helpers: Key pairs and token factories for tests

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
