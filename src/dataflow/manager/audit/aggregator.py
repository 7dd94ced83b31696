"""
Time aggregation of raw audit series.
"""

from collections import defaultdict
from datetime import datetime

import structlog

from .exceptions import ParseFailure
from .models import (
    DAY_FORMAT,
    HOUR_FORMAT,
    SECOND_FORMAT,
    AggregatedResult,
    AuditPoint,
    AuditSeries,
    TimeGranularity,
)

logger = structlog.get_logger(__name__)

_GRANULARITY_FORMATS = {
    TimeGranularity.MINUTE: SECOND_FORMAT,
    TimeGranularity.HOUR: HOUR_FORMAT,
    TimeGranularity.DAY: DAY_FORMAT,
}


def bucket_format(granularity: TimeGranularity) -> str:
    return _GRANULARITY_FORMATS.get(granularity, SECOND_FORMAT)


def format_label(label: str, fmt: str) -> str:
    """Re-render ``label`` under ``fmt``, reading only the leading part the format covers.

    ``2024-01-01 00:00:15`` becomes ``2024-01-01 00`` under the hour format.
    """
    width = len(datetime(2000, 1, 1).strftime(fmt))
    try:
        return datetime.strptime(label.strip()[:width], fmt).strftime(fmt)
    except (AttributeError, ValueError) as exc:
        raise ParseFailure(f"log time {label!r} does not match {fmt!r}") from exc


def average_delay(total_delay: int, count: int) -> int:
    """Integer average truncated toward zero; 0 for an empty bucket."""
    if count <= 0:
        return 0
    quotient = abs(total_delay) // count
    return -quotient if total_delay < 0 else quotient


class TimeAggregator:
    """Rolls raw per-minute series up to the requested granularity."""

    def aggregate(
        self, series_list: list[AuditSeries], granularity: TimeGranularity
    ) -> list[AggregatedResult]:
        fmt = bucket_format(granularity)
        return [self._aggregate_series(series, fmt) for series in series_list]

    def _aggregate_series(self, series: AuditSeries, fmt: str) -> AggregatedResult:
        counts: dict[str, int] = defaultdict(int)
        delays: dict[str, int] = defaultdict(int)

        for point in series.points:
            try:
                key = format_label(point.log_ts, fmt)
            except ParseFailure as exc:
                logger.error(
                    "Skipping audit point with malformed log time",
                    audit_id=series.audit_id,
                    log_ts=point.log_ts,
                    error=str(exc),
                )
                continue
            counts[key] += point.count
            delays[key] += point.delay

        points = [
            AuditPoint(
                log_ts=key,
                count=counts[key],
                delay=average_delay(delays[key], counts[key]),
            )
            for key in sorted(counts)
        ]
        return AggregatedResult(audit_id=series.audit_id, node_type=series.node_type, points=points)
