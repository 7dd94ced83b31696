"""
Global pytest configuration and fixtures for the Dataflow Manager tests.
"""

from collections.abc import Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import dataflow.manager.audit.models  # noqa: F401 - registers audit tables
import dataflow.manager.streams.models  # noqa: F401 - registers topology tables
from dataflow.manager.audit.models import AuditBase, AuditBaseItem
from dataflow.manager.db import Base

# (type, is_sent, audit_id) rows loaded into audit_base for every test that asks for them
AUDIT_BASE_ROWS = [
    ("AGENT", False, "3"),
    ("AGENT", True, "4"),
    ("DATAPROXY", False, "5"),
    ("DATAPROXY", True, "6"),
    ("HIVE", False, "9"),
    ("HIVE", True, "10"),
    ("KAFKA", False, "11"),
    ("KAFKA", True, "12"),
]


class StubAuditBaseStore:
    """In-memory audit base store counting lookups."""

    def __init__(self, rows: list[tuple[str, bool, str]] | None = None) -> None:
        self.items = [
            AuditBaseItem(type=item_type, is_sent=is_sent, audit_id=audit_id)
            for item_type, is_sent, audit_id in (rows if rows is not None else AUDIT_BASE_ROWS)
        ]
        self.select_all_calls = 0
        self.point_lookups: list[tuple[str, bool]] = []
        self.fail_select_all = False

    async def select_all(self) -> list[AuditBaseItem]:
        self.select_all_calls += 1
        if self.fail_select_all:
            raise ConnectionError("configuration store is down")
        return list(self.items)

    async def select_by_type_and_is_sent(
        self, item_type: str, is_sent: bool
    ) -> AuditBaseItem | None:
        self.point_lookups.append((item_type, is_sent))
        for item in self.items:
            if item.type == item_type and item.is_sent == is_sent:
                return item
        return None


@pytest.fixture
def stub_audit_store() -> StubAuditBaseStore:
    return StubAuditBaseStore()


@pytest_asyncio.fixture
async def async_db_engine():
    """In-memory SQLite engine with every manager table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_db_engine, expire_on_commit=False)


@pytest.fixture
def add_rows(session_factory) -> Callable:
    """Insert ORM objects in one transaction."""

    async def _add(*objects) -> None:
        async with session_factory() as session:
            session.add_all(objects)
            await session.commit()

    return _add


@pytest_asyncio.fixture
async def seeded_audit_base(add_rows) -> None:
    await add_rows(
        *(
            AuditBase(name=f"{item_type} {'sent' if is_sent else 'received'}", type=item_type,
                      is_sent=is_sent, audit_id=audit_id)
            for item_type, is_sent, audit_id in AUDIT_BASE_ROWS
        )
    )
