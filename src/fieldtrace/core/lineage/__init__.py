"""Field lineage: per-stage graphs, validation, composition, and queries."""

from fieldtrace.core.lineage.composer import (
    LineageEdge,
    OperationRef,
    PipelineLineageGraph,
    compose_pipeline,
)
from fieldtrace.core.lineage.query import LineageQueryEngine, LineageStep, LineageWalk
from fieldtrace.core.lineage.stage_graph import (
    FieldEdge,
    OperationResolution,
    StageGraphBuilder,
    StageOperationGraph,
    build_stage_graph,
)
from fieldtrace.core.lineage.validator import (
    StageOperationsValidator,
    collect_invalid_stages,
    validate_pipeline,
    validate_stage,
)

__all__ = [
    "FieldEdge",
    "LineageEdge",
    "LineageQueryEngine",
    "LineageStep",
    "LineageWalk",
    "OperationRef",
    "OperationResolution",
    "PipelineLineageGraph",
    "StageGraphBuilder",
    "StageOperationGraph",
    "StageOperationsValidator",
    "build_stage_graph",
    "collect_invalid_stages",
    "compose_pipeline",
    "validate_pipeline",
    "validate_stage",
]
