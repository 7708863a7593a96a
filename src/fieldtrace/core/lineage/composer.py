# src/fieldtrace/core/lineage/composer.py
"""Cross-stage lineage composition.

Stitches per-stage operation graphs into one pipeline-wide graph. Stage N
feeds stage N+1 only through fields declared in BOTH stage N's output
schema and stage N+1's input schema; same-named fields that are not
schema-connected at the boundary stay unlinked.

A boundary field that stage N carries from its input schema straight to
its output schema without writing it is resolved further upstream, so the
inter-stage edge always starts at the operation that actually wrote it.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, cast

import networkx as nx
import structlog
from networkx import MultiDiGraph

from fieldtrace.contracts import (
    EdgeScope,
    FieldName,
    FieldOperation,
    LineageCompositionError,
    OperationName,
    StageDeclaration,
    StageName,
)
from fieldtrace.core.lineage.stage_graph import StageOperationGraph, build_stage_graph
from fieldtrace.core.lineage.validator import validate_pipeline

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True, order=True)
class OperationRef:
    """Pipeline-wide identity of an operation: (stage, operation name)."""

    stage: StageName
    operation: OperationName

    def __str__(self) -> str:
        return f"{self.stage}.{self.operation}"


@dataclass(frozen=True, slots=True)
class LineageEdge:
    """Edge of the pipeline lineage graph.

    Attributes:
        source: Operation that produced the field
        target: Operation that consumed it
        field: Field name carried along the edge
        scope: INTRA_STAGE or INTER_STAGE
    """

    source: OperationRef
    target: OperationRef
    field: FieldName
    scope: EdgeScope

    def to_dict(self) -> dict[str, str]:
        return {
            "from_stage": self.source.stage,
            "from_operation": self.source.operation,
            "to_stage": self.target.stage,
            "to_operation": self.target.operation,
            "field": self.field,
            "scope": self.scope.value,
        }


class PipelineLineageGraph:
    """Pipeline-wide provenance graph.

    Wraps a frozen NetworkX MultiDiGraph whose nodes are OperationRef and
    whose edges run producer -> consumer keyed by field name. Borrows the
    per-stage graphs it was composed from and never mutates them.
    """

    def __init__(self, graph: MultiDiGraph[Any], stage_graphs: Sequence[StageOperationGraph]) -> None:
        self._graph: MultiDiGraph[Any] = nx.freeze(graph)
        self._stage_graphs: dict[StageName, StageOperationGraph] = {g.stage.name: g for g in stage_graphs}
        self._stage_order: tuple[StageName, ...] = tuple(g.stage.name for g in stage_graphs)

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    @property
    def stages(self) -> tuple[StageName, ...]:
        """Stage names in pipeline order."""
        return self._stage_order

    def get_nx_graph(self) -> MultiDiGraph[Any]:
        """Return the underlying frozen NetworkX graph."""
        return self._graph

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self._graph)

    def stage_graph(self, stage: str) -> StageOperationGraph:
        """Per-stage graph by name.

        Raises:
            KeyError: If the pipeline has no such stage
        """
        if stage not in self._stage_graphs:
            raise KeyError(f"Stage not found: {stage}")
        return self._stage_graphs[StageName(stage)]

    def has_operation(self, ref: OperationRef) -> bool:
        return self._graph.has_node(ref)

    def get_operation(self, ref: OperationRef) -> FieldOperation:
        """FieldOperation stored on a node.

        Raises:
            KeyError: If the node doesn't exist
        """
        if not self._graph.has_node(ref):
            raise KeyError(f"Operation not found: {ref}")
        return cast(FieldOperation, self._graph.nodes[ref]["info"])

    def operations(self) -> Iterator[OperationRef]:
        """All operations in pipeline order, then declaration order."""
        for stage in self._stage_order:
            for operation in self._stage_graphs[stage].stage.operations:
                yield OperationRef(stage, operation.name)

    def _edge(self, u: OperationRef, v: OperationRef, key: str) -> LineageEdge:
        return LineageEdge(source=u, target=v, field=FieldName(key), scope=self._graph.edges[u, v, key]["scope"])

    def edges(self) -> list[LineageEdge]:
        """Serializable edge list: operation -> operation with field labels."""
        return [self._edge(u, v, k) for u, v, k in self._graph.edges(keys=True)]

    def upstream_edges(self, ref: OperationRef) -> list[LineageEdge]:
        """Edges feeding ``ref``; empty for unknown operations."""
        if not self._graph.has_node(ref):
            return []
        return [self._edge(u, v, k) for u, v, k in self._graph.in_edges(ref, keys=True)]

    def downstream_edges(self, ref: OperationRef) -> list[LineageEdge]:
        """Edges leaving ``ref``; empty for unknown operations."""
        if not self._graph.has_node(ref):
            return []
        return [self._edge(u, v, k) for u, v, k in self._graph.out_edges(ref, keys=True)]

    def resolve_field(self, stage: str, field_name: str) -> OperationRef | None:
        """Operation that wrote the value of ``field_name`` visible in ``stage``.

        The last writer within the stage if there is one, otherwise the
        producer carried across schema-connected boundaries. None when the
        stage is unknown or nothing produced the field.
        """
        if stage not in self._stage_graphs:
            return None
        index = self._stage_order.index(StageName(stage))
        return _resolve_producer([self._stage_graphs[s] for s in self._stage_order], index, FieldName(field_name))

    def producers_of(self, stage: str, field_name: str) -> list[OperationRef]:
        """Operations that produced ``field_name`` as consumed by ``stage``.

        Distinct sources of every edge labelled ``field_name`` that ends in
        an operation of ``stage``, in consumer declaration order.
        """
        if stage not in self._stage_graphs:
            return []
        producers: list[OperationRef] = []
        for operation in self._stage_graphs[StageName(stage)].stage.operations:
            ref = OperationRef(StageName(stage), operation.name)
            for edge in self.upstream_edges(ref):
                if edge.field == field_name and edge.source not in producers:
                    producers.append(edge.source)
        return producers

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation: stages, operation descriptors, edges."""
        return {
            "stages": [
                {
                    "name": name,
                    "input_schema": sorted(self._stage_graphs[name].stage.input_schema),
                    "output_schema": sorted(self._stage_graphs[name].stage.output_schema),
                    "operations": [op.to_dict() for op in self._stage_graphs[name].stage.operations],
                }
                for name in self._stage_order
            ],
            "edges": [edge.to_dict() for edge in self.edges()],
        }


def _resolve_producer(graphs: Sequence[StageOperationGraph], index: int, field_name: FieldName) -> OperationRef | None:
    """Walk upstream through passthrough boundaries to the last writer of a field."""
    while index >= 0:
        stage_graph = graphs[index]
        producer = stage_graph.producer_of(field_name)
        if producer is not None:
            return OperationRef(stage_graph.stage.name, producer)
        if index == 0 or field_name not in stage_graph.stage.input_schema:
            return None
        if field_name not in graphs[index - 1].stage.output_schema:
            return None
        index -= 1
    return None


def compose_pipeline(stages: Sequence[StageDeclaration | StageOperationGraph]) -> PipelineLineageGraph:
    """Validate every stage and stitch them into one lineage graph.

    Args:
        stages: Stages in pipeline order, as declarations or prebuilt graphs

    Returns:
        Read-only PipelineLineageGraph

    Raises:
        InvalidLineageError: If any stage fails validation (reported for the
            whole pipeline before anything is composed)
        LineageCompositionError: If stage names repeat, or a field both
            boundary schemas declare has no producer anywhere upstream
    """
    graphs = [stage if isinstance(stage, StageOperationGraph) else build_stage_graph(stage) for stage in stages]

    name_counts = Counter(g.stage.name for g in graphs)
    duplicates = sorted(name for name, count in name_counts.items() if count > 1)
    if duplicates:
        raise LineageCompositionError(f"Stage names must be unique within a pipeline, duplicated: {duplicates}")

    validate_pipeline(graphs)

    composed: MultiDiGraph[Any] = nx.MultiDiGraph()
    for index, stage_graph in enumerate(graphs):
        stage_name = stage_graph.stage.name
        for operation in stage_graph.stage.operations:
            composed.add_node(OperationRef(stage_name, operation.name), info=operation, stage_index=index)
        for edge in stage_graph.edges():
            composed.add_edge(
                OperationRef(stage_name, edge.source),
                OperationRef(stage_name, edge.target),
                key=edge.field,
                scope=EdgeScope.INTRA_STAGE,
            )

    inter_stage_edges = 0
    for index in range(1, len(graphs)):
        upstream = graphs[index - 1]
        downstream = graphs[index]
        # external_inputs only holds fields in the downstream input schema
        for field_name, consumers in downstream.external_inputs.items():
            if field_name not in upstream.stage.output_schema:
                continue
            producer = _resolve_producer(graphs, index - 1, field_name)
            if producer is None:
                raise LineageCompositionError(
                    f"Field '{field_name}' is declared in the output schema of stage '{upstream.stage.name}' "
                    f"and consumed by stage '{downstream.stage.name}' (operations: {list(consumers)}), "
                    "but no operation upstream produces it."
                )
            for consumer in consumers:
                composed.add_edge(
                    producer,
                    OperationRef(downstream.stage.name, consumer),
                    key=field_name,
                    scope=EdgeScope.INTER_STAGE,
                )
                inter_stage_edges += 1

    if not nx.is_directed_acyclic_graph(composed):
        cycle = nx.find_cycle(composed)
        cycle_str = " -> ".join(str(edge[0]) for edge in cycle)
        raise LineageCompositionError(f"Lineage graph contains a cycle: {cycle_str}")

    lineage = PipelineLineageGraph(composed, graphs)
    logger.info(
        "Composed pipeline lineage graph",
        stages=len(graphs),
        operations=lineage.node_count,
        edges=lineage.edge_count,
        inter_stage_edges=inter_stage_edges,
    )
    return lineage
