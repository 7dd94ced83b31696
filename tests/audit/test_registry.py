"""Tests for the audit base item cache."""

import pytest

from dataflow.manager.audit.exceptions import UnsupportedAuditType
from dataflow.manager.audit.registry import AuditBaseRegistry
from dataflow.manager.audit.store import SqlAuditBaseStore

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_refresh_loads_every_item(stub_audit_store):
    registry = AuditBaseRegistry(stub_audit_store)

    assert await registry.refresh() is True

    assert registry.size == len(stub_audit_store.items)
    assert registry.get_item("DATAPROXY", True).audit_id == "6"
    assert registry.get_item("DATAPROXY", False).audit_id == "5"


@pytest.mark.asyncio
async def test_refresh_failure_keeps_previous_entries(stub_audit_store):
    registry = AuditBaseRegistry(stub_audit_store)
    await registry.refresh()

    stub_audit_store.fail_select_all = True
    assert await registry.refresh() is False

    assert registry.get_item("AGENT", False).audit_id == "3"


@pytest.mark.asyncio
async def test_resolve_hit_does_not_touch_store(stub_audit_store):
    registry = AuditBaseRegistry(stub_audit_store)
    await registry.refresh()

    assert await registry.resolve("HIVE", True) == "10"
    assert stub_audit_store.point_lookups == []


@pytest.mark.asyncio
async def test_resolve_miss_populates_cache(stub_audit_store):
    registry = AuditBaseRegistry(stub_audit_store)

    assert await registry.resolve("KAFKA", False) == "11"
    assert await registry.resolve("KAFKA", False) == "11"

    assert stub_audit_store.point_lookups == [("KAFKA", False)]
    assert registry.size == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("item_type", [None, "", "   "])
async def test_resolve_blank_type_returns_none(stub_audit_store, item_type):
    registry = AuditBaseRegistry(stub_audit_store)

    assert await registry.resolve(item_type, True) is None
    assert stub_audit_store.point_lookups == []


@pytest.mark.asyncio
async def test_resolve_unknown_type_raises(stub_audit_store):
    registry = AuditBaseRegistry(stub_audit_store)

    with pytest.raises(UnsupportedAuditType) as exc_info:
        await registry.resolve("ICEBERG", True)

    assert exc_info.value.item_type == "ICEBERG"
    assert "ICEBERG" in str(exc_info.value)
    assert "sent" in str(exc_info.value)


@pytest.mark.asyncio
async def test_clear_empties_both_directions(stub_audit_store):
    registry = AuditBaseRegistry(stub_audit_store)
    await registry.refresh()

    registry.clear()

    assert registry.size == 0
    assert registry.get_item("HIVE", False) is None


@pytest.mark.asyncio
async def test_sql_store_backs_registry(session_factory, seeded_audit_base):
    registry = AuditBaseRegistry(SqlAuditBaseStore(session_factory))

    assert await registry.resolve("AGENT", True) == "4"
    assert await registry.refresh() is True
    assert registry.size == 8


@pytest.mark.asyncio
async def test_sql_store_point_lookup_missing(session_factory, seeded_audit_base):
    store = SqlAuditBaseStore(session_factory)

    assert await store.select_by_type_and_is_sent("ICEBERG", False) is None
