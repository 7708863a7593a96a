"""Lineage engine: orchestration over the core lineage algorithms.

This module provides:
- LineageEngine: declarations -> validated, composed, fingerprinted lineage
- ProvenanceToken: per-run key-value store with writer attribution
- Clock: injectable wall clock for token timestamps

Example:
    from fieldtrace.engine import LineageEngine

    result = LineageEngine().compute("customers", stages)
    chain = list(result.queries.causal_chain("enrich", "full_name"))
"""

from fieldtrace.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from fieldtrace.engine.lineage import LineageEngine, LineagePublisher, LineageResult
from fieldtrace.engine.tokens import ProvenanceToken, TimestampedValue

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "LineageEngine",
    "LineagePublisher",
    "LineageResult",
    "MockClock",
    "ProvenanceToken",
    "SystemClock",
    "TimestampedValue",
]
