"""Audit query backend interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from datetime import UTC, date, datetime, timedelta
from typing import Any

from ..models import SECOND_FORMAT, RawPoint


class AuditQueryBackend(ABC):
    """Queries the raw per-minute series of one audit id over a day range."""

    name: str = "base"

    # Whether errors from this backend must always reach the caller
    propagates_failures: bool = False

    @abstractmethod
    async def query(
        self,
        group_id: str,
        stream_id: str,
        audit_id: str,
        start_date: date,
        end_date: date,
    ) -> list[RawPoint]:
        """
        Query summed count and delay per minute bucket.

        Args:
            group_id: Data group id
            stream_id: Data stream id
            audit_id: Audit id, never empty
            start_date: First day of the range
            end_date: Last day of the range (inclusive)

        Returns:
            One point per bucket present in the data

        Raises:
            BackendUnavailable: The backend holds no data source for this audit id
            BackendFailure: Transport or driver error
        """
        pass

    async def close(self) -> None:
        """Release client resources."""
        pass


def day_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    """Half-open datetime range ``[start_date, end_date + 1 day)``."""
    start = datetime.combine(start_date, datetime.min.time())
    end = datetime.combine(end_date + timedelta(days=1), datetime.min.time())
    return start, end


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    day = start_date
    while day <= end_date:
        yield day
        day += timedelta(days=1)


def format_log_ts(value: Any) -> str:
    """Render a backend bucket key as a second-level label.

    ISO 8601 strings such as ``2024-01-01T00:00:15.000Z`` are normalised; aware
    timestamps are rendered in UTC. Unparseable strings are returned unchanged.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            return value
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.strftime(SECOND_FORMAT)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=UTC).strftime(SECOND_FORMAT)
    return str(value)
