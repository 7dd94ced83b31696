"""
Audit query service.

Resolves the audit ids of a stream, queries the configured backend once per
audit id and rolls the raw series up to the requested granularity.
"""

import asyncio
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..auth import UserInfo
from ..streams.lookup import SqlTopologyLookup, TopologyLookup
from .aggregator import TimeAggregator
from .backends import AuditQueryBackend, ClickHouseConfig, create_query_backend
from .exceptions import AuditSourceNotFound, BackendFailure, BackendUnavailable
from .models import (
    AggregatedResult,
    AuditRequest,
    AuditSeries,
    AuditSourceRequest,
    AuditSourceResponse,
)
from .registry import AuditBaseRegistry
from .resolver import AuditIdResolver
from .store import AuditSourceStore, SqlAuditBaseStore

logger = structlog.get_logger(__name__)

CLICKHOUSE_SOURCE_TYPE = "CLICKHOUSE"


class AuditQueryService:
    """Entry point of the audit query engine."""

    def __init__(
        self,
        *,
        registry: AuditBaseRegistry,
        resolver: AuditIdResolver,
        topology: TopologyLookup,
        backend: AuditQueryBackend,
        aggregator: TimeAggregator | None = None,
        source_store: AuditSourceStore | None = None,
        clickhouse_config: ClickHouseConfig | None = None,
        backend_timeout: float = 30.0,
        max_concurrent_queries: int = 8,
        isolate_backend_failures: bool = True,
    ) -> None:
        self.registry = registry
        self.resolver = resolver
        self.topology = topology
        self.backend = backend
        self.aggregator = aggregator or TimeAggregator()
        self.source_store = source_store
        self.clickhouse_config = clickhouse_config
        self.backend_timeout = backend_timeout
        self.max_concurrent_queries = max_concurrent_queries
        self.isolate_backend_failures = isolate_backend_failures

    async def initialize(self) -> None:
        """Warm the audit base cache; a failed load is retried lazily on lookup."""
        logger.info("Initializing audit base item cache")
        if not await self.refresh_base_item_cache():
            logger.warning("Audit base item cache starts empty")

    async def refresh_base_item_cache(self) -> bool:
        return await self.registry.refresh()

    async def get_audit_id(self, item_type: str | None, is_sent: bool) -> str | None:
        return await self.registry.resolve(item_type, is_sent)

    async def list_by_condition(
        self, request: AuditRequest, caller: UserInfo
    ) -> list[AggregatedResult]:
        """Query and aggregate the audit series of one stream."""
        logger.info(
            "Querying audit data",
            group_id=request.group_id,
            stream_id=request.stream_id,
            start_date=request.start_date.isoformat(),
            end_date=request.end_date.isoformat(),
            granularity=request.time_granularity.value,
        )

        topology = await self.topology.get_topology(
            request.group_id, request.stream_id, request.sink_id
        )
        audit_ids = await self.resolver.resolve_for_topology(
            request.group_id, request.stream_id, topology, caller.is_tenant_admin
        )
        request.audit_ids = sorted(audit_ids)
        node_types = await self.resolver.node_types(topology)

        semaphore = asyncio.Semaphore(self.max_concurrent_queries)

        async def run(audit_id: str) -> AuditSeries:
            async with semaphore:
                return await self._query_series(request, audit_id, node_types.get(audit_id))

        outcomes = await asyncio.gather(
            *(run(audit_id) for audit_id in request.audit_ids), return_exceptions=True
        )
        # every task has finished, so no backend resource is still held here
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        result = self.aggregator.aggregate(list(outcomes), request.time_granularity)
        logger.info(
            "Audit query done",
            group_id=request.group_id,
            stream_id=request.stream_id,
            audit_ids=request.audit_ids,
        )
        return result

    async def _query_series(
        self, request: AuditRequest, audit_id: str, node_type: str | None
    ) -> AuditSeries:
        context = {
            "audit_id": audit_id,
            "group_id": request.group_id,
            "stream_id": request.stream_id,
            "start_date": request.start_date.isoformat(),
            "end_date": request.end_date.isoformat(),
            "backend": self.backend.name,
        }
        series = AuditSeries(audit_id=audit_id, node_type=node_type)
        try:
            # gathered tasks run in copied contexts, so the binding is per audit id
            with structlog.contextvars.bound_contextvars(audit_id=audit_id):
                series.points = await asyncio.wait_for(
                    self.backend.query(
                        request.group_id,
                        request.stream_id,
                        audit_id,
                        request.start_date,
                        request.end_date,
                    ),
                    timeout=self.backend_timeout,
                )
        except TimeoutError as exc:
            if self.backend.propagates_failures:
                raise BackendFailure(f"audit query timed out for audit_id={audit_id}") from exc
            logger.warning("Audit backend query timed out", **context)
        except BackendUnavailable as exc:
            logger.warning("Audit backend unavailable", error=str(exc), **context)
        except BackendFailure as exc:
            if self.backend.propagates_failures or not self.isolate_backend_failures:
                raise
            logger.error("Audit backend query failed", error=str(exc), exc_info=True, **context)
        return series

    async def update_audit_source(self, request: AuditSourceRequest, operator: str) -> int:
        """Register a new online audit source, taking ``offline_url`` sources offline."""
        store = self._require_source_store()
        entity = await store.replace_online_source(request, operator)
        logger.info("Audit source registered", source_id=entity.id, type=entity.type)

        if self.clickhouse_config is not None and entity.type.upper() == CLICKHOUSE_SOURCE_TYPE:
            await self.clickhouse_config.update_runtime_config(entity)
        return entity.id

    async def get_audit_source(self) -> AuditSourceResponse:
        entity = await self._require_source_store().select_online_source()
        if entity is None:
            raise AuditSourceNotFound("no online audit source")
        logger.debug("Loaded online audit source", source_id=entity.id)
        return AuditSourceResponse.model_validate(entity)

    def _require_source_store(self) -> AuditSourceStore:
        if self.source_store is None:
            raise RuntimeError("audit source store is not configured")
        return self.source_store

    async def close(self) -> None:
        await self.backend.close()


def create_audit_query_service(
    settings: Any,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    backend: AuditQueryBackend | None = None,
    topology: TopologyLookup | None = None,
) -> AuditQueryService:
    """Wire an audit query service from settings."""
    registry = AuditBaseRegistry(SqlAuditBaseStore(session_factory))
    clickhouse_config = ClickHouseConfig.from_settings(settings.clickhouse)
    return AuditQueryService(
        registry=registry,
        resolver=AuditIdResolver(registry, settings.audit.admin_ids, settings.audit.user_ids),
        topology=topology or SqlTopologyLookup(session_factory),
        backend=backend
        or create_query_backend(
            settings, session_factory=session_factory, clickhouse_config=clickhouse_config
        ),
        source_store=AuditSourceStore(session_factory),
        clickhouse_config=clickhouse_config,
        backend_timeout=settings.audit.backend_timeout_seconds,
        max_concurrent_queries=settings.audit.max_concurrent_queries,
        isolate_backend_failures=settings.audit.isolate_backend_failures,
    )
