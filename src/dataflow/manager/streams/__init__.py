"""
Stream topology: groups, sinks and sources consulted by the audit engine.
"""

from dataflow.manager.streams.lookup import (
    GroupNotFound,
    SqlTopologyLookup,
    StreamTopology,
    TopologyLookup,
)
from dataflow.manager.streams.models import (
    AUTO_PUSH,
    DataGroup,
    GroupMode,
    StreamSink,
    StreamSource,
)

__all__ = [
    "AUTO_PUSH",
    "DataGroup",
    "GroupMode",
    "GroupNotFound",
    "StreamSink",
    "StreamSource",
    "SqlTopologyLookup",
    "StreamTopology",
    "TopologyLookup",
]
