"""
Process-scoped cache of audit base items.

Maps an item type (``DATAPROXY``, ``AGENT``, a sink type, ...) and a direction
to the audit id that counts events for it. The cache is filled in bulk by
``refresh`` and lazily on a miss; entries are immutable and only ever replaced
by another load from the same durable store.
"""

import structlog

from .exceptions import UnsupportedAuditType
from .models import AuditBaseItem
from .store import AuditBaseStore

logger = structlog.get_logger(__name__)


class AuditBaseRegistry:
    """Cache of audit base items keyed by (type, is_sent)."""

    def __init__(self, store: AuditBaseStore) -> None:
        self._store = store
        # key: item type, value: audit base item
        self._sent_items: dict[str, AuditBaseItem] = {}
        self._received_items: dict[str, AuditBaseItem] = {}

    def _items(self, is_sent: bool) -> dict[str, AuditBaseItem]:
        return self._sent_items if is_sent else self._received_items

    @property
    def size(self) -> int:
        return len(self._sent_items) + len(self._received_items)

    async def refresh(self) -> bool:
        """Reload every audit base item from the store.

        Entries are written one at a time, so a concurrent reader may observe
        a partially refreshed cache.
        """
        logger.debug("Reloading audit base items")
        try:
            items = await self._store.select_all()
        except Exception as exc:
            logger.error("Failed to reload audit base items", error=str(exc), exc_info=True)
            return False

        for item in items:
            self._items(item.is_sent)[item.type] = item

        logger.debug("Reloaded audit base items", count=len(items))
        return True

    def get_item(self, item_type: str, is_sent: bool) -> AuditBaseItem | None:
        """Return the cached item without touching the store."""
        return self._items(is_sent).get(item_type)

    async def resolve(self, item_type: str | None, is_sent: bool) -> str | None:
        """Return the audit id for ``(item_type, is_sent)``.

        Blank types resolve to ``None``. A cache miss is filled from the store;
        a type with no configuration raises ``UnsupportedAuditType``.
        """
        if item_type is None or not item_type.strip():
            return None

        item = self.get_item(item_type, is_sent)
        if item is not None:
            return item.audit_id

        item = await self._store.select_by_type_and_is_sent(item_type, is_sent)
        if item is None:
            raise UnsupportedAuditType(item_type, is_sent)

        self._items(is_sent)[item_type] = item
        return item.audit_id

    def clear(self) -> None:
        self._sent_items.clear()
        self._received_items.clear()
