"""
Durable stores for audit base items and audit sources.
"""

from typing import Protocol

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import (
    AuditBase,
    AuditBaseItem,
    AuditSource,
    AuditSourceRequest,
    AuditSourceStatus,
)

logger = structlog.get_logger(__name__)


class AuditBaseStore(Protocol):
    """Configuration store backing the audit base registry."""

    async def select_all(self) -> list[AuditBaseItem]:
        """Load every configured audit base item."""
        ...

    async def select_by_type_and_is_sent(
        self, item_type: str, is_sent: bool
    ) -> AuditBaseItem | None:
        """Point lookup of one audit base item."""
        ...


class SqlAuditBaseStore:
    """Audit base store over the ``audit_base`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def select_all(self) -> list[AuditBaseItem]:
        async with self._session_factory() as session:
            rows = (await session.execute(select(AuditBase))).scalars().all()
        return [AuditBaseItem.from_entity(row) for row in rows]

    async def select_by_type_and_is_sent(
        self, item_type: str, is_sent: bool
    ) -> AuditBaseItem | None:
        stmt = select(AuditBase).where(AuditBase.type == item_type, AuditBase.is_sent == is_sent)
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalars().first()
        return AuditBaseItem.from_entity(row) if row is not None else None


class AuditSourceStore:
    """Registered audit sources over the ``audit_source`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def replace_online_source(self, request: AuditSourceRequest, operator: str) -> AuditSource:
        """Offline sources at ``request.offline_url`` and insert the new online source."""
        async with self._session_factory() as session:
            if request.offline_url:
                await session.execute(
                    update(AuditSource)
                    .where(AuditSource.url == request.offline_url)
                    .values(status=AuditSourceStatus.OFFLINE.value, modifier=operator)
                )
                logger.info("Audit source taken offline", url=request.offline_url)

            entity = AuditSource(
                **request.model_dump(exclude={"offline_url"}),
                status=AuditSourceStatus.ONLINE.value,
                creator=operator,
                modifier=operator,
            )
            session.add(entity)
            await session.commit()
            await session.refresh(entity)
            return entity

    async def select_online_source(self) -> AuditSource | None:
        stmt = (
            select(AuditSource)
            .where(AuditSource.status == AuditSourceStatus.ONLINE.value)
            .order_by(AuditSource.id.desc())
        )
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalars().first()
