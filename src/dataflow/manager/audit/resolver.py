"""
Audit id resolution for a stream.

Picks the audit ids worth reporting for a (group, stream) pair from the
caller's role and the stream's sink/source topology.
"""

from collections.abc import Iterable

import structlog

from ..streams.lookup import StreamTopology
from .registry import AuditBaseRegistry

logger = structlog.get_logger(__name__)

# Item types of the platform components themselves
DATAPROXY = "DATAPROXY"
AGENT = "AGENT"


class AuditIdResolver:
    """Computes the set of audit ids relevant to a stream."""

    def __init__(
        self,
        registry: AuditBaseRegistry,
        admin_ids: Iterable[str],
        user_ids: Iterable[str],
    ) -> None:
        self.registry = registry
        self.admin_ids = list(admin_ids)
        self.user_ids = list(user_ids)

    async def resolve_ids(
        self,
        group_id: str,
        stream_id: str,
        source_node_type: str | None,
        sink_node_type: str | None,
        caller_is_privileged: bool,
        *,
        sync_mode: bool = False,
        sources_all_auto_push: bool = False,
    ) -> set[str]:
        """Return the audit ids to query for one stream.

        Args:
            group_id: Data group id
            stream_id: Data stream id
            source_node_type: Type of the stream's source, if any
            sink_node_type: Type of the reported sink, if any
            caller_is_privileged: Whether the caller is a tenant admin
            sync_mode: Whether the group tracks source and sink as dual endpoints
            sources_all_auto_push: Whether no source of the stream goes through an agent

        Returns:
            Deduplicated audit ids, never containing an empty id
        """
        audit_ids: set[str | None] = set(self.admin_ids if caller_is_privileged else self.user_ids)

        # without a sink, data can only be followed up to the proxy
        if sink_node_type is None:
            audit_ids.add(await self.registry.resolve(DATAPROXY, True))
        else:
            audit_ids.add(await self.registry.resolve(sink_node_type, True))
            if sync_mode:
                audit_ids.add(await self.registry.resolve(source_node_type, False))
            else:
                audit_ids.add(await self.registry.resolve(sink_node_type, False))

        # auto push sources never report agent data, use the proxy's received count instead
        if sources_all_auto_push:
            agent_received = await self.registry.resolve(AGENT, False)
            if agent_received in audit_ids:
                audit_ids.add(await self.registry.resolve(DATAPROXY, False))

        resolved = {audit_id for audit_id in audit_ids if audit_id and audit_id.strip()}
        logger.debug(
            "Resolved audit ids",
            group_id=group_id,
            stream_id=stream_id,
            audit_ids=sorted(resolved),
        )
        return resolved

    async def resolve_for_topology(
        self,
        group_id: str,
        stream_id: str,
        topology: StreamTopology,
        caller_is_privileged: bool,
    ) -> set[str]:
        """Resolve audit ids straight from a looked up topology."""
        return await self.resolve_ids(
            group_id,
            stream_id,
            topology.source_type if topology.sync_mode else None,
            topology.sink_type,
            caller_is_privileged,
            sync_mode=topology.sync_mode,
            sources_all_auto_push=topology.all_sources_auto_push,
        )

    async def node_types(self, topology: StreamTopology) -> dict[str, str]:
        """Map the sink/source audit ids of a stream to their node type labels."""
        labels: dict[str, str] = {}
        sink_type = topology.sink_type
        received_type = topology.source_type if topology.sync_mode else sink_type

        sent_id = await self.registry.resolve(sink_type, True)
        if sent_id and sink_type:
            labels[sent_id] = sink_type
        received_id = await self.registry.resolve(received_type, False)
        if received_id and received_type:
            labels[received_id] = received_type
        return labels
