"""
ECS Application Layer

This package implements the read-only web service using aiohttp.

Key Components:
- server.py: Web server setup, middleware and component wiring
- config.py: Configuration management using Pydantic settings
- metrics.py: Metrics client abstraction
- cli.py: Entry point with logging configuration
- handlers/: Request handlers

Endpoints:
- POST /resolve: ENSIP-10 style `resolve(name, data)`
- GET /text: Credential lookup by dotted name and key
- GET /registry/namespaces/{label}: Namespace entry and availability
- GET /registry/resolver-info/{address}: Namespace served by a resolver
- GET /internal/alive: Liveness probe
- GET /internal/ready: Readiness probe (database reachable)
"""
