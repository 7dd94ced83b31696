"""Unit tests for the Elasticsearch audit backend using stub clients."""

from datetime import date

import pytest
from elasticsearch import ConnectionError as ESConnectionError

from dataflow.manager.audit.aggregator import TimeAggregator
from dataflow.manager.audit.backends.elasticsearch import (
    ElasticsearchAuditBackend,
    build_search_body,
    index_name,
    parse_buckets,
)
from dataflow.manager.audit.exceptions import BackendFailure
from dataflow.manager.audit.models import AuditSeries, RawPoint, TimeGranularity

pytestmark = pytest.mark.unit


class StubIndices:
    def __init__(self, existing):
        self.existing = set(existing)
        self.checked = []

    async def exists(self, index):
        self.checked.append(index)
        return index in self.existing


class StubResponse:
    def __init__(self, body):
        self.body = body


class StubClient:
    def __init__(self, existing=(), responses=None, search_error=None):
        self.indices = StubIndices(existing)
        self.responses = responses or {}
        self.search_error = search_error
        self.search_calls = []
        self.closed = False

    async def search(self, **kwargs):
        self.search_calls.append(kwargs)
        if self.search_error is not None:
            raise self.search_error
        return StubResponse(self.responses.get(kwargs["index"], {}))

    async def close(self):
        self.closed = True


def _buckets(*buckets):
    return {
        "aggregations": {
            "log_ts": {
                "buckets": [
                    {
                        "key": key,
                        "key_as_string": key,
                        "count": {"value": count},
                        "delay": {"value": delay},
                    }
                    for key, count, delay in buckets
                ]
            }
        }
    }


def test_index_name_uses_compact_day():
    assert index_name(date(2024, 1, 5), "5") == "20240105_5"


def test_search_body_filters_group_and_stream():
    body = build_search_body("g1", "s1")

    must = body["query"]["bool"]["must"]
    assert must[0]["term"]["inlong_group_id"]["value"] == "g1"
    assert must[1]["term"]["inlong_stream_id"]["value"] == "s1"
    assert body["size"] == 0
    terms = body["aggregations"]["log_ts"]
    assert terms["terms"]["field"] == "log_ts"
    assert set(terms["aggregations"]) == {"count", "delay"}


def test_parse_buckets_prefers_key_as_string():
    response = {
        "aggregations": {
            "log_ts": {
                "buckets": [
                    {"key": 1704067200000, "key_as_string": "2024-01-01 00:00:00",
                     "count": {"value": 3.0}, "delay": {"value": 9.0}},
                ]
            }
        }
    }

    assert parse_buckets(response) == [RawPoint("2024-01-01 00:00:00", 3, 9)]


def test_parse_buckets_renders_epoch_millis():
    response = {
        "aggregations": {
            "log_ts": {"buckets": [{"key": 1704067260000, "count": {"value": 1}, "delay": {"value": 0}}]}
        }
    }

    assert parse_buckets(response) == [RawPoint("2024-01-01 00:01:00", 1, 0)]


@pytest.mark.parametrize("response", [{}, {"aggregations": {}}, {"aggregations": {"log_ts": {}}}])
def test_parse_buckets_tolerates_missing_aggregations(response):
    assert parse_buckets(response) == []


@pytest.mark.asyncio
async def test_query_reads_every_day_in_range():
    client = StubClient(
        existing={"20240101_5", "20240102_5"},
        responses={
            "20240101_5": _buckets(("2024-01-01 00:00:00", 2, 4)),
            "20240102_5": _buckets(("2024-01-02 00:00:00", 3, 3)),
        },
    )
    backend = ElasticsearchAuditBackend(client)

    points = await backend.query("g1", "s1", "5", date(2024, 1, 1), date(2024, 1, 2))

    assert points == [
        RawPoint("2024-01-01 00:00:00", 2, 4),
        RawPoint("2024-01-02 00:00:00", 3, 3),
    ]
    assert [call["index"] for call in client.search_calls] == ["20240101_5", "20240102_5"]
    assert client.search_calls[0]["size"] == 0


@pytest.mark.asyncio
async def test_query_skips_missing_index():
    client = StubClient(
        existing={"20240102_5"},
        responses={"20240102_5": _buckets(("2024-01-02 10:00:00", 1, 1))},
    )
    backend = ElasticsearchAuditBackend(client)

    points = await backend.query("g1", "s1", "5", date(2024, 1, 1), date(2024, 1, 2))

    assert points == [RawPoint("2024-01-02 10:00:00", 1, 1)]
    assert client.indices.checked == ["20240101_5", "20240102_5"]


@pytest.mark.asyncio
async def test_query_without_any_index_returns_empty():
    client = StubClient()
    backend = ElasticsearchAuditBackend(client)

    assert await backend.query("g1", "s1", "5", date(2024, 1, 1), date(2024, 1, 1)) == []
    assert client.search_calls == []


@pytest.mark.asyncio
async def test_transport_error_becomes_backend_failure():
    client = StubClient(existing={"20240101_5"}, search_error=ESConnectionError("cluster down"))
    backend = ElasticsearchAuditBackend(client)

    with pytest.raises(BackendFailure):
        await backend.query("g1", "s1", "5", date(2024, 1, 1), date(2024, 1, 1))


@pytest.mark.asyncio
async def test_close_closes_client():
    client = StubClient()
    backend = ElasticsearchAuditBackend(client)

    await backend.close()

    assert client.closed is True


def test_parse_buckets_normalises_iso_key_as_string():
    response = {
        "aggregations": {
            "log_ts": {
                "buckets": [
                    {"key": 1704067215000, "key_as_string": "2024-01-01T00:00:15.000Z",
                     "count": {"value": 2}, "delay": {"value": 10}},
                ]
            }
        }
    }

    points = parse_buckets(response)

    assert points == [RawPoint("2024-01-01 00:00:15", 2, 10)]
    [result] = TimeAggregator().aggregate(
        [AuditSeries(audit_id="5", points=points)], TimeGranularity.HOUR
    )
    assert [(p.log_ts, p.count, p.delay) for p in result.points] == [("2024-01-01 00", 2, 5)]
