"""
Stream topology lookup used to pick the audit ids of a stream.
"""

from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import AUTO_PUSH, DataGroup, GroupMode, StreamSink, StreamSource


class GroupNotFound(LookupError):
    """Raised when the data group of a stream does not exist."""

    pass


@dataclass(frozen=True)
class StreamTopology:
    """Sink/source layout of a stream as seen by the audit engine."""

    group_mode: str = GroupMode.STANDARD.value
    # sink selected for the report, None when the stream has no sink
    sink_type: str | None = None
    source_types: list[str] = field(default_factory=list)

    @property
    def sync_mode(self) -> bool:
        return self.group_mode == GroupMode.DATASYNC.value

    @property
    def source_type(self) -> str | None:
        """Type of the first configured source."""
        return self.source_types[0] if self.source_types else None

    @property
    def all_sources_auto_push(self) -> bool:
        """True when no source goes through an agent (including no sources at all)."""
        return all(source_type == AUTO_PUSH for source_type in self.source_types)


class TopologyLookup(Protocol):
    """Resolves the topology of a (group, stream) pair."""

    async def get_topology(
        self, group_id: str, stream_id: str, sink_id: int | None = None
    ) -> StreamTopology:
        ...


class SqlTopologyLookup:
    """Topology lookup over the ``data_group``, ``stream_sink`` and ``stream_source`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_topology(
        self, group_id: str, stream_id: str, sink_id: int | None = None
    ) -> StreamTopology:
        async with self._session_factory() as session:
            group = (
                await session.execute(select(DataGroup).where(DataGroup.group_id == group_id))
            ).scalars().first()
            if group is None:
                raise GroupNotFound(f"data group {group_id} does not exist")

            # only one sink is reported per query; the first one unless asked otherwise
            if sink_id is not None:
                sink = await session.get(StreamSink, sink_id)
            else:
                sink = (
                    await session.execute(
                        select(StreamSink)
                        .where(StreamSink.group_id == group_id, StreamSink.stream_id == stream_id)
                        .order_by(StreamSink.id)
                    )
                ).scalars().first()

            source_types = (
                await session.execute(
                    select(StreamSource.source_type)
                    .where(StreamSource.group_id == group_id, StreamSource.stream_id == stream_id)
                    .order_by(StreamSource.id)
                )
            ).scalars().all()

        return StreamTopology(
            group_mode=group.mode,
            sink_type=sink.sink_type if sink is not None else None,
            source_types=list(source_types),
        )
