"""
Core modules that must remain protocol neutral.

Keep protocol parsing and exporter quirks out of this package.
"""

from .models import CanonicalRow, FlowObservation
from .identity import EndpointIdentityCache
from .counters import TrafficCounters
from .sink import BatchedSink
from .pipeline import FlowPipeline
from .server import CollectorMCPServer

__all__ = [
    "CanonicalRow",
    "FlowObservation",
    "EndpointIdentityCache",
    "TrafficCounters",
    "BatchedSink",
    "FlowPipeline",
    "CollectorMCPServer",
]
