"""Relational audit backend over the ``audit_data`` table."""

from datetime import date

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from ..exceptions import BackendFailure
from ..models import AuditData, RawPoint
from .base import AuditQueryBackend, day_bounds, format_log_ts

logger = structlog.get_logger(__name__)


def minute_bucket(column: ColumnElement, dialect_name: str) -> ColumnElement:
    """Truncate a datetime column to a ``YYYY-MM-DD HH:MM:00`` label."""
    if dialect_name == "sqlite":
        return func.strftime("%Y-%m-%d %H:%M:00", column)
    if dialect_name == "postgresql":
        return func.to_char(column, "YYYY-MM-DD HH24:MI:00")
    return func.date_format(column, "%Y-%m-%d %H:%i:00")


class RelationalAuditBackend(AuditQueryBackend):
    """Sums raw audit rows per minute with a GROUP BY query."""

    name = "mysql"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def query(
        self,
        group_id: str,
        stream_id: str,
        audit_id: str,
        start_date: date,
        end_date: date,
    ) -> list[RawPoint]:
        start, end = day_bounds(start_date, end_date)
        try:
            async with self._session_factory() as session:
                bucket = minute_bucket(AuditData.log_ts, session.bind.dialect.name).label("log_ts")
                stmt = (
                    select(
                        bucket,
                        func.sum(AuditData.count).label("total"),
                        func.sum(AuditData.delay).label("total_delay"),
                    )
                    .where(
                        AuditData.inlong_group_id == group_id,
                        AuditData.inlong_stream_id == stream_id,
                        AuditData.audit_id == audit_id,
                        AuditData.log_ts >= start,
                        AuditData.log_ts < end,
                    )
                    .group_by(bucket)
                    .order_by(bucket)
                )
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise BackendFailure(f"relational audit query failed for audit_id={audit_id}") from exc

        logger.debug("Relational audit query done", audit_id=audit_id, buckets=len(rows))
        return [
            RawPoint(
                log_ts=format_log_ts(row.log_ts),
                count=int(row.total or 0),
                delay=int(row.total_delay or 0),
            )
            for row in rows
        ]
