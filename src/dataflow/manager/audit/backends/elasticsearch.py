"""
Elasticsearch audit backend.

Audit rows are indexed per day and audit id (``{YYYYMMDD}_{audit_id}``) and
summed per ``log_ts`` with a terms aggregation.
"""

from datetime import date
from typing import Any

import structlog
from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from ..exceptions import BackendFailure
from ..models import RawPoint
from .base import AuditQueryBackend, format_log_ts, iter_days

logger = structlog.get_logger(__name__)

DEFAULT_BOOST = 1.0
TERM_FIELD = "log_ts"
COUNT_FIELD = "count"
DELAY_FIELD = "delay"
MAX_TERMS_SIZE = 2147483647


def index_name(day: date, audit_id: str) -> str:
    return f"{day.strftime('%Y%m%d')}_{audit_id}"


def build_search_body(group_id: str, stream_id: str) -> dict[str, Any]:
    """Build the search request summing count and delay per log_ts bucket."""
    return {
        "from": 0,
        "size": 0,
        "query": {
            "bool": {
                "must": [
                    {"term": {"inlong_group_id": {"value": group_id, "boost": DEFAULT_BOOST}}},
                    {"term": {"inlong_stream_id": {"value": stream_id, "boost": DEFAULT_BOOST}}},
                ],
                "adjust_pure_negative": True,
                "boost": DEFAULT_BOOST,
            }
        },
        "sort": [{TERM_FIELD: {"order": "asc"}}],
        "aggregations": {
            TERM_FIELD: {
                "terms": {
                    "field": TERM_FIELD,
                    "size": MAX_TERMS_SIZE,
                    "order": {"_key": "asc"},
                },
                "aggregations": {
                    COUNT_FIELD: {"sum": {"field": COUNT_FIELD}},
                    DELAY_FIELD: {"sum": {"field": DELAY_FIELD}},
                },
            }
        },
    }


def parse_buckets(response: Any) -> list[RawPoint]:
    """Flatten the log_ts aggregation buckets; a missing subtree yields no points."""
    body = getattr(response, "body", response) or {}
    aggregation = (body.get("aggregations") or {}).get(TERM_FIELD) or {}
    points = []
    for bucket in aggregation.get("buckets") or []:
        key = bucket.get("key_as_string", bucket.get("key"))
        points.append(
            RawPoint(
                log_ts=format_log_ts(key),
                count=int((bucket.get(COUNT_FIELD) or {}).get("value") or 0),
                delay=int((bucket.get(DELAY_FIELD) or {}).get("value") or 0),
            )
        )
    return points


class ElasticsearchAuditBackend(AuditQueryBackend):
    """Queries one audit index per day in the requested range."""

    name = "elasticsearch"

    def __init__(self, client: AsyncElasticsearch) -> None:
        self.client = client

    @classmethod
    def from_settings(cls, es_settings: Any) -> "ElasticsearchAuditBackend":
        basic_auth = None
        if es_settings.username:
            basic_auth = (es_settings.username, es_settings.password or "")
        client = AsyncElasticsearch(
            hosts=[es_settings.url],
            basic_auth=basic_auth,
            verify_certs=es_settings.verify_certs,
            request_timeout=es_settings.request_timeout,
        )
        return cls(client)

    async def query(
        self,
        group_id: str,
        stream_id: str,
        audit_id: str,
        start_date: date,
        end_date: date,
    ) -> list[RawPoint]:
        body = build_search_body(group_id, stream_id)
        points: list[RawPoint] = []
        for day in iter_days(start_date, end_date):
            index = index_name(day, audit_id)
            try:
                if not await self.client.indices.exists(index=index):
                    logger.warning(
                        "Elasticsearch audit index does not exist",
                        index=index,
                        audit_id=audit_id,
                        group_id=group_id,
                        stream_id=stream_id,
                    )
                    continue
                response = await self.client.search(
                    index=index,
                    query=body["query"],
                    aggregations=body["aggregations"],
                    sort=body["sort"],
                    from_=body["from"],
                    size=body["size"],
                )
            except (ApiError, TransportError) as exc:
                raise BackendFailure(f"elasticsearch audit query failed for index={index}") from exc
            points.extend(parse_buckets(response))
        return points

    async def close(self) -> None:
        await self.client.close()
