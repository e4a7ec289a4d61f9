"""
Shared infrastructure for pgslice

Provides:
- db_pool: PostgreSQL connection pooling
- logging: Logging setup and formatters
- metrics: Prometheus metrics publishing
- tracing: OpenTelemetry spans
"""

__all__ = ["db_pool", "logging", "metrics", "tracing"]
