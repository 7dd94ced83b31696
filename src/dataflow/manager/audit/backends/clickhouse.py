"""
ClickHouse audit backend.

Rows may be delivered more than once, so every query first deduplicates on
all raw columns before summing per ``log_ts``. Each query runs inside its own
connection scope; the connection is returned to the pool on every exit path.
"""

from datetime import date
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ..exceptions import BackendFailure, BackendUnavailable
from ..models import SECOND_FORMAT, AuditSource, RawPoint
from .base import AuditQueryBackend, day_bounds, format_log_ts

logger = structlog.get_logger(__name__)

RAW_COLUMNS = (
    "ip",
    "docker_id",
    "thread_id",
    "sdk_ts",
    "packet_id",
    "log_ts",
    "inlong_group_id",
    "inlong_stream_id",
    "audit_id",
    "count",
    "size",
    "delay",
)


def build_audit_sql(table: str) -> str:
    """Distinct raw rows of one audit id, summed per log_ts."""
    sub_query = (
        f"SELECT DISTINCT {', '.join(RAW_COLUMNS)} FROM {table}"
        " WHERE inlong_group_id = :group_id"
        " AND inlong_stream_id = :stream_id"
        " AND audit_id = :audit_id"
        " AND log_ts >= :start_ts"
        " AND log_ts < :end_ts"
    )
    return (
        "SELECT log_ts, sum(count) AS total, sum(delay) AS total_delay"
        f" FROM ({sub_query}) AS sub"
        " GROUP BY log_ts"
        " ORDER BY log_ts"
    )


class ClickHouseConfig:
    """Owns the ClickHouse engine and rebuilds it when the audit source changes."""

    def __init__(
        self,
        url: str | None,
        *,
        table: str = "audit_data",
        engine_options: dict[str, Any] | None = None,
    ) -> None:
        self.url = url
        self.table = table
        self.engine_options = engine_options or {}
        self._engine: AsyncEngine | None = None

    @classmethod
    def from_settings(cls, ch_settings: Any) -> "ClickHouseConfig":
        return cls(
            ch_settings.url,
            table=ch_settings.table,
            engine_options={
                "pool_size": ch_settings.pool_size,
                "pool_recycle": ch_settings.pool_recycle,
            },
        )

    def get_engine(self) -> AsyncEngine:
        if not self.url:
            raise BackendUnavailable("no ClickHouse audit source is configured")
        if self._engine is None:
            options = {} if self.url.startswith("sqlite") else dict(self.engine_options)
            self._engine = create_async_engine(self.url, **options)
        return self._engine

    async def update_runtime_config(self, source: AuditSource) -> None:
        """Point the engine at a newly registered audit source."""
        url = make_url(source.url)
        if source.enable_auth:
            url = url.set(username=source.username, password=source.token)

        previous = self._engine
        self.url = url.render_as_string(hide_password=False)
        self._engine = None
        if previous is not None:
            await previous.dispose()
        logger.info("ClickHouse runtime config updated", source_id=source.id, host=url.host)

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None


class ClickHouseAuditBackend(AuditQueryBackend):
    """Queries deduplicated raw audit rows from ClickHouse."""

    name = "clickhouse"
    propagates_failures = True

    def __init__(self, config: ClickHouseConfig) -> None:
        self.config = config

    async def query(
        self,
        group_id: str,
        stream_id: str,
        audit_id: str,
        start_date: date,
        end_date: date,
    ) -> list[RawPoint]:
        start, end = day_bounds(start_date, end_date)
        params = {
            "group_id": group_id,
            "stream_id": stream_id,
            "audit_id": audit_id,
            "start_ts": start.strftime(SECOND_FORMAT),
            "end_ts": end.strftime(SECOND_FORMAT),
        }
        try:
            engine = self.config.get_engine()
            async with engine.connect() as connection:
                result = await connection.execute(text(build_audit_sql(self.config.table)), params)
                rows = result.all()
        except SQLAlchemyError as exc:
            raise BackendFailure(f"clickhouse audit query failed for audit_id={audit_id}") from exc

        logger.debug("ClickHouse audit query done", audit_id=audit_id, buckets=len(rows))
        return [
            RawPoint(
                log_ts=format_log_ts(row.log_ts),
                count=int(row.total or 0),
                delay=int(row.total_delay or 0),
            )
            for row in rows
        ]

    async def close(self) -> None:
        await self.config.dispose()
