# src/fieldtrace/core/lineage/stage_graph.py
"""Per-stage operation graph construction.

Operations are processed in declared order against a running
``produced_by`` mapping (field -> last operation that wrote it). Each
input is resolved before the operation's own outputs are recorded, so an
operation never feeds itself, and a later write to the same field replaces
the earlier producer (last writer wins).

Building never fails. Unresolvable references are recorded on the graph
and classified by the validator.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import cast

import networkx as nx
import structlog
from networkx import MultiDiGraph

from fieldtrace.contracts import FieldName, FieldOperation, OperationName, StageDeclaration

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FieldEdge:
    """Operation ``source`` produced ``field`` which ``target`` consumed."""

    source: OperationName
    target: OperationName
    field: FieldName


@dataclass(frozen=True, slots=True)
class OperationResolution:
    """How one operation's inputs resolved against the running stage state.

    Attributes:
        operation: The operation that was added
        produced_inputs: Input field -> earlier operation that produced it
        external_inputs: Inputs supplied by the stage input schema
        unresolved_inputs: Inputs with neither a producer nor a schema entry
    """

    operation: FieldOperation
    produced_inputs: Mapping[FieldName, OperationName]
    external_inputs: tuple[FieldName, ...]
    unresolved_inputs: tuple[FieldName, ...]


class StageGraphBuilder:
    """Incrementally builds the operation graph of one stage.

    ``add_operation`` exposes the running state step by step, which is what
    the validator replays; ``build`` drives all declared operations and
    freezes the result.
    """

    def __init__(self, stage: StageDeclaration) -> None:
        self._stage = stage
        self._graph: MultiDiGraph[str] = nx.MultiDiGraph()
        self._produced_by: dict[FieldName, OperationName] = {}
        # Fields whose current producer has been read since it last wrote them
        self._consumed: set[FieldName] = set()
        self._external_inputs: dict[FieldName, list[OperationName]] = {}
        self._unresolved_inputs: dict[FieldName, list[OperationName]] = {}
        self._added: list[FieldOperation] = []

    @property
    def stage(self) -> StageDeclaration:
        return self._stage

    @property
    def produced_by(self) -> Mapping[FieldName, OperationName]:
        """Read-only view of the running last-writer mapping."""
        return MappingProxyType(self._produced_by)

    def is_consumed(self, field_name: FieldName) -> bool:
        """True if the current producer of ``field_name`` has been read since writing it."""
        return field_name in self._consumed

    def add_operation(self, operation: FieldOperation) -> OperationResolution:
        """Resolve the operation's inputs, then record its outputs.

        Args:
            operation: Next operation in declared order

        Returns:
            Resolution of the operation's inputs against the state as it was
            just before this operation.
        """
        self._graph.add_node(operation.name, info=operation)
        self._added.append(operation)

        produced_inputs: dict[FieldName, OperationName] = {}
        external: list[FieldName] = []
        unresolved: list[FieldName] = []

        for field_name in operation.inputs:
            producer = self._produced_by.get(field_name)
            if producer is not None:
                produced_inputs[field_name] = producer
                self._graph.add_edge(producer, operation.name, key=field_name, field=field_name)
                self._consumed.add(field_name)
            elif field_name in self._stage.input_schema:
                external.append(field_name)
                self._external_inputs.setdefault(field_name, []).append(operation.name)
            else:
                unresolved.append(field_name)
                self._unresolved_inputs.setdefault(field_name, []).append(operation.name)

        for field_name in operation.outputs:
            self._produced_by[field_name] = operation.name
            self._consumed.discard(field_name)

        return OperationResolution(
            operation=operation,
            produced_inputs=MappingProxyType(produced_inputs),
            external_inputs=tuple(external),
            unresolved_inputs=tuple(unresolved),
        )

    def unconsumed_outputs(self) -> dict[FieldName, OperationName]:
        """Final producers whose output no later operation read.

        Superseded producers are never reported: once a field is rewritten,
        the earlier write has no observable output left to be unused.
        Ordered by declaration of the producing operation.
        """
        unconsumed: dict[FieldName, OperationName] = {}
        for operation in self._added:
            for field_name in operation.outputs:
                if self._produced_by[field_name] != operation.name:
                    continue
                if field_name not in self._consumed:
                    unconsumed[field_name] = operation.name
        return unconsumed

    def build(self) -> StageOperationGraph:
        """Add every declared operation not yet added and freeze the graph."""
        for operation in self._stage.operations[len(self._added) :]:
            self.add_operation(operation)

        graph = StageOperationGraph(
            stage=self._stage,
            graph=self._graph,
            produced_by=dict(self._produced_by),
            external_inputs={f: tuple(ops) for f, ops in self._external_inputs.items()},
            unresolved_inputs={f: tuple(ops) for f, ops in self._unresolved_inputs.items()},
            unconsumed_outputs=self.unconsumed_outputs(),
        )
        logger.debug(
            "Built stage operation graph",
            stage=self._stage.name,
            operations=graph.operation_count,
            edges=graph.edge_count,
            unresolved_inputs=len(graph.unresolved_inputs),
        )
        return graph


class StageOperationGraph:
    """Operation graph of a single stage.

    Nodes are operation names (node attribute ``info`` holds the
    FieldOperation); edges run producer -> consumer keyed by field name.
    Read-only once built.
    """

    def __init__(
        self,
        *,
        stage: StageDeclaration,
        graph: MultiDiGraph[str],
        produced_by: dict[FieldName, OperationName],
        external_inputs: dict[FieldName, tuple[OperationName, ...]],
        unresolved_inputs: dict[FieldName, tuple[OperationName, ...]],
        unconsumed_outputs: dict[FieldName, OperationName],
    ) -> None:
        self._stage = stage
        self._graph: MultiDiGraph[str] = nx.freeze(graph)
        self._produced_by: Mapping[FieldName, OperationName] = MappingProxyType(produced_by)
        self._external_inputs: Mapping[FieldName, tuple[OperationName, ...]] = MappingProxyType(external_inputs)
        self._unresolved_inputs: Mapping[FieldName, tuple[OperationName, ...]] = MappingProxyType(unresolved_inputs)
        self._unconsumed_outputs: Mapping[FieldName, OperationName] = MappingProxyType(unconsumed_outputs)

    @property
    def stage(self) -> StageDeclaration:
        return self._stage

    @property
    def produced_by(self) -> Mapping[FieldName, OperationName]:
        """Field -> last operation in the stage that wrote it."""
        return self._produced_by

    @property
    def external_inputs(self) -> Mapping[FieldName, tuple[OperationName, ...]]:
        """Field -> operations that read it from the stage input schema."""
        return self._external_inputs

    @property
    def unresolved_inputs(self) -> Mapping[FieldName, tuple[OperationName, ...]]:
        """Field -> operations that read it with no producer and no schema entry."""
        return self._unresolved_inputs

    @property
    def unconsumed_outputs(self) -> Mapping[FieldName, OperationName]:
        """Field -> last writer whose output nothing later in the stage read."""
        return self._unconsumed_outputs

    @property
    def operation_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def get_nx_graph(self) -> MultiDiGraph[str]:
        """Return the underlying (frozen) NetworkX graph."""
        return self._graph

    def get_operation(self, name: str) -> FieldOperation:
        """Get the FieldOperation for a node.

        Raises:
            KeyError: If the stage has no such operation
        """
        if not self._graph.has_node(name):
            raise KeyError(f"Operation not found in stage '{self._stage.name}': {name}")
        return cast(FieldOperation, self._graph.nodes[name]["info"])

    def producer_of(self, field_name: str) -> OperationName | None:
        """Last writer of ``field_name`` in this stage, or None."""
        return self._produced_by.get(FieldName(field_name))

    def edges(self) -> list[FieldEdge]:
        """All producer -> consumer edges in insertion order."""
        return [FieldEdge(source=OperationName(u), target=OperationName(v), field=FieldName(k)) for u, v, k in self._graph.edges(keys=True)]

    def upstream_of(self, operation: str) -> list[FieldEdge]:
        """Edges feeding ``operation``."""
        self.get_operation(operation)
        return [FieldEdge(source=OperationName(u), target=OperationName(v), field=FieldName(k)) for u, v, k in self._graph.in_edges(operation, keys=True)]

    def downstream_of(self, operation: str) -> list[FieldEdge]:
        """Edges leaving ``operation``."""
        self.get_operation(operation)
        return [FieldEdge(source=OperationName(u), target=OperationName(v), field=FieldName(k)) for u, v, k in self._graph.out_edges(operation, keys=True)]


def build_stage_graph(stage: StageDeclaration) -> StageOperationGraph:
    """Build the operation graph for one stage declaration."""
    return StageGraphBuilder(stage).build()
