"""
Audit base items, raw audit rows and query models.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, OperatorMixin, TimestampMixin

SECOND_FORMAT = "%Y-%m-%d %H:%M:%S"
HOUR_FORMAT = "%Y-%m-%d %H"
DAY_FORMAT = "%Y-%m-%d"


class TimeGranularity(str, Enum):
    """Bucket size of the aggregated audit series."""

    # labels are passed through at the backend's native second-level format
    MINUTE = "MINUTE"
    HOUR = "HOUR"
    DAY = "DAY"


class AuditSourceStatus(int, Enum):
    """Lifecycle of a registered audit source."""

    OFFLINE = 0
    ONLINE = 1


# ORM models


class AuditBase(Base):
    """Audit base item configuration table."""

    __tablename__ = "audit_base"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    audit_id: Mapped[str] = mapped_column(String(11), nullable=False)

    __table_args__ = (Index("ux_audit_base_type_is_sent", "type", "is_sent", unique=True),)


class AuditData(Base):
    """Raw audit rows reported by agents, proxies and sort jobs."""

    __tablename__ = "audit_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ip: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    docker_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    thread_id: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    sdk_ts: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    packet_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    log_ts: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    inlong_group_id: Mapped[str] = mapped_column(String(100), nullable=False)
    inlong_stream_id: Mapped[str] = mapped_column(String(100), nullable=False)
    audit_id: Mapped[str] = mapped_column(String(100), nullable=False)
    count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    delay: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        Index(
            "ix_audit_data_group_stream_audit_log_ts",
            "inlong_group_id",
            "inlong_stream_id",
            "audit_id",
            "log_ts",
        ),
    )


class AuditSource(Base, TimestampMixin, OperatorMixin):
    """Registered audit data source (e.g. the ClickHouse cluster in use)."""

    __tablename__ = "audit_source"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    url: Mapped[str] = mapped_column(String(256), nullable=False)
    enable_auth: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    username: Mapped[str | None] = mapped_column(String(128), nullable=True)
    token: Mapped[str | None] = mapped_column(String(512), nullable=True)
    status: Mapped[int] = mapped_column(
        Integer, nullable=False, default=AuditSourceStatus.ONLINE.value
    )


# Domain models


@dataclass(frozen=True)
class AuditBaseItem:
    """Mapping of an item type and direction to its audit id."""

    type: str
    audit_id: str
    is_sent: bool

    @classmethod
    def from_entity(cls, entity: AuditBase) -> "AuditBaseItem":
        return cls(type=entity.type, audit_id=entity.audit_id, is_sent=bool(entity.is_sent))


@dataclass(frozen=True)
class RawPoint:
    """One backend bucket: summed count and cumulative delay."""

    log_ts: str
    count: int
    delay: int


@dataclass
class AuditSeries:
    """Raw series returned for a single audit id."""

    audit_id: str
    node_type: str | None = None
    points: list[RawPoint] = field(default_factory=list)


class AuditRequest(BaseModel):
    """Audit query for one stream over an inclusive day range."""

    model_config = ConfigDict(str_strip_whitespace=True)

    group_id: str = Field(..., min_length=1, description="Data group id")
    stream_id: str = Field(..., min_length=1, description="Data stream id")
    sink_id: int | None = Field(None, description="Sink to report; defaults to the first sink")
    start_date: date = Field(..., description="First day, YYYY-MM-DD")
    end_date: date = Field(..., description="Last day (inclusive), YYYY-MM-DD")
    time_granularity: TimeGranularity = Field(TimeGranularity.MINUTE)
    audit_ids: list[str] = Field(default_factory=list, description="Resolved audit ids")

    @model_validator(mode="after")
    def check_date_range(self) -> "AuditRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AuditPoint(BaseModel):
    """One aggregated bucket; delay is the average delay of the bucket."""

    log_ts: str
    count: int
    delay: int


class AggregatedResult(BaseModel):
    """Aggregated audit series for one audit id."""

    audit_id: str
    node_type: str | None = None
    points: list[AuditPoint] = Field(default_factory=list)


class AuditSourceRequest(BaseModel):
    """Registration of a new audit source."""

    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    enable_auth: bool = False
    username: str | None = None
    token: str | None = None
    offline_url: str | None = Field(None, description="Take sources with this url offline")


class AuditSourceResponse(BaseModel):
    """Registered audit source."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: str
    url: str
    enable_auth: bool
    username: str | None = None
    token: str | None = None
    status: int
