# src/fieldtrace/core/__init__.py
"""Core infrastructure: Lineage, Canonical, Configuration, Logging."""

from fieldtrace.core.canonical import (
    CANONICAL_VERSION,
    canonical_json,
    lineage_fingerprint,
    stable_hash,
)
from fieldtrace.core.config import (
    ConcurrencySettings,
    FieldTraceSettings,
    LoggingSettings,
    OperationSettings,
    PipelineSettings,
    StageSettings,
    load_settings,
)
from fieldtrace.core.lineage import (
    LineageQueryEngine,
    OperationRef,
    PipelineLineageGraph,
    StageOperationGraph,
    build_stage_graph,
    compose_pipeline,
    validate_pipeline,
    validate_stage,
)
from fieldtrace.core.logging import configure_logging, get_logger, lineage_context

__all__ = [
    "CANONICAL_VERSION",
    "ConcurrencySettings",
    "FieldTraceSettings",
    "LineageQueryEngine",
    "LoggingSettings",
    "OperationRef",
    "OperationSettings",
    "PipelineLineageGraph",
    "PipelineSettings",
    "StageOperationGraph",
    "StageSettings",
    "build_stage_graph",
    "canonical_json",
    "compose_pipeline",
    "configure_logging",
    "get_logger",
    "lineage_context",
    "lineage_fingerprint",
    "load_settings",
    "stable_hash",
    "validate_pipeline",
    "validate_stage",
]
