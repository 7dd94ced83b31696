"""
Dataflow Manager - management backend of the data-integration platform.

This package hosts the audit query engine of the manager:
- Audit id resolution from stream topology and caller role
- Pluggable audit backends (relational, Elasticsearch, ClickHouse)
- Time aggregation of audit series
"""

__version__ = "1.0.0"
