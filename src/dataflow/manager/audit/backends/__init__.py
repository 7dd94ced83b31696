"""
Audit query backends.

Exactly one backend serves a deployment; it is chosen once at startup from
``settings.audit.query_source``.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dataflow.manager.audit.backends.base import AuditQueryBackend
from dataflow.manager.audit.backends.clickhouse import ClickHouseAuditBackend, ClickHouseConfig
from dataflow.manager.audit.backends.elasticsearch import ElasticsearchAuditBackend
from dataflow.manager.audit.backends.relational import RelationalAuditBackend
from dataflow.manager.settings import AuditQuerySource


def create_query_backend(
    settings: Any,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    clickhouse_config: ClickHouseConfig | None = None,
) -> AuditQueryBackend:
    """Build the backend named by ``settings.audit.query_source``."""
    source = AuditQuerySource(settings.audit.query_source)
    if source == AuditQuerySource.MYSQL:
        return RelationalAuditBackend(session_factory)
    if source == AuditQuerySource.ELASTICSEARCH:
        return ElasticsearchAuditBackend.from_settings(settings.elasticsearch)
    return ClickHouseAuditBackend(
        clickhouse_config or ClickHouseConfig.from_settings(settings.clickhouse)
    )


__all__ = [
    "AuditQueryBackend",
    "ClickHouseAuditBackend",
    "ClickHouseConfig",
    "ElasticsearchAuditBackend",
    "RelationalAuditBackend",
    "create_query_backend",
]
