"""
Audit Query & Aggregation Engine.

Resolves the audit ids relevant to a stream, queries the configured
time-series backend and re-aggregates the raw series by time.
"""

from .aggregator import TimeAggregator
from .exceptions import (
    AuditError,
    AuditSourceNotFound,
    BackendFailure,
    BackendUnavailable,
    ConfigurationMissing,
    ParseFailure,
    UnsupportedAuditType,
)
from .models import (
    AggregatedResult,
    AuditBaseItem,
    AuditPoint,
    AuditRequest,
    AuditSeries,
    AuditSourceRequest,
    AuditSourceResponse,
    RawPoint,
    TimeGranularity,
)
from .registry import AuditBaseRegistry
from .resolver import AuditIdResolver
from .service import AuditQueryService, create_audit_query_service

__all__ = [
    # Engine
    "AuditBaseRegistry",
    "AuditIdResolver",
    "AuditQueryService",
    "TimeAggregator",
    "create_audit_query_service",
    # Models
    "AggregatedResult",
    "AuditBaseItem",
    "AuditPoint",
    "AuditRequest",
    "AuditSeries",
    "AuditSourceRequest",
    "AuditSourceResponse",
    "RawPoint",
    "TimeGranularity",
    # Exceptions
    "AuditError",
    "AuditSourceNotFound",
    "BackendFailure",
    "BackendUnavailable",
    "ConfigurationMissing",
    "ParseFailure",
    "UnsupportedAuditType",
]
