"""
Stream topology tables.

Only the columns read by the audit engine are mapped here.
"""

from enum import Enum

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base

# Source type of sources that push straight to the data proxy without an agent
AUTO_PUSH = "AUTO_PUSH"


class GroupMode(str, Enum):
    """How a data group tracks its streams."""

    STANDARD = "standard"
    # source and sink are tracked as dual endpoints
    DATASYNC = "datasync"


class DataGroup(Base):
    """Data group holding one or more streams."""

    __tablename__ = "data_group"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    mode: Mapped[str] = mapped_column(String(20), nullable=False, default=GroupMode.STANDARD.value)


class StreamSink(Base):
    """Sink configured on a stream."""

    __tablename__ = "stream_sink"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[str] = mapped_column(String(256), nullable=False)
    stream_id: Mapped[str] = mapped_column(String(256), nullable=False)
    sink_type: Mapped[str] = mapped_column(String(20), nullable=False)

    __table_args__ = (Index("ix_stream_sink_group_stream", "group_id", "stream_id"),)


class StreamSource(Base):
    """Source configured on a stream."""

    __tablename__ = "stream_source"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[str] = mapped_column(String(256), nullable=False)
    stream_id: Mapped[str] = mapped_column(String(256), nullable=False)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)

    __table_args__ = (Index("ix_stream_source_group_stream", "group_id", "stream_id"),)
