"""Provenance queries over a composed pipeline lineage graph."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from fieldtrace.contracts import FieldOperation
from fieldtrace.core.lineage.composer import LineageEdge, OperationRef, PipelineLineageGraph


@dataclass(frozen=True, slots=True)
class LineageStep:
    """One operation visited by a lineage walk.

    Attributes:
        ref: Stage and operation name
        operation: The declared operation
        depth: Number of edges from the starting operation (0 for the start)
    """

    ref: OperationRef
    operation: FieldOperation
    depth: int

    def to_dict(self) -> dict[str, Any]:
        return {"stage": self.ref.stage, "depth": self.depth, **self.operation.to_dict()}


class LineageWalk:
    """Lazy, finite, restartable breadth-first walk.

    Nothing is computed until iteration starts; every ``iter()`` call
    starts a fresh walk from the same origin. Each operation is yielded at
    most once, nearest first.
    """

    def __init__(
        self,
        graph: PipelineLineageGraph,
        start: OperationRef | None,
        neighbours: Callable[[OperationRef], list[LineageEdge]],
        pick: Callable[[LineageEdge], OperationRef],
    ) -> None:
        self._graph = graph
        self._start = start
        self._neighbours = neighbours
        self._pick = pick

    @property
    def origin(self) -> OperationRef | None:
        """Operation the walk starts from, or None for an empty walk."""
        return self._start

    def __iter__(self) -> Iterator[LineageStep]:
        if self._start is None:
            return
        visited: set[OperationRef] = {self._start}
        pending: deque[tuple[OperationRef, int]] = deque([(self._start, 0)])
        while pending:
            current, depth = pending.popleft()
            yield LineageStep(ref=current, operation=self._graph.get_operation(current), depth=depth)
            for edge in self._neighbours(current):
                nxt = self._pick(edge)
                # Graph is acyclic by construction; the guard also dedups diamonds
                if nxt in visited:
                    continue
                visited.add(nxt)
                pending.append((nxt, depth + 1))

    def refs(self) -> list[OperationRef]:
        """Materialize the walk as operation references."""
        return [step.ref for step in self]


class LineageQueryEngine:
    """Answers provenance questions about one composed pipeline.

    Example:
        engine = LineageQueryEngine(lineage)
        for step in engine.causal_chain("enrich", "full_name"):
            print(step.ref, step.operation.kind)
    """

    def __init__(self, graph: PipelineLineageGraph) -> None:
        self._graph = graph

    @property
    def graph(self) -> PipelineLineageGraph:
        return self._graph

    def producers_of(self, stage: str, field_name: str) -> list[OperationRef]:
        """Which upstream operations produced ``field_name`` consumed at ``stage``."""
        return self._graph.producers_of(stage, field_name)

    def last_writer(self, stage: str, field_name: str) -> OperationRef | None:
        """Operation behind the current value of ``field_name`` at ``stage``."""
        return self._graph.resolve_field(stage, field_name)

    def causal_chain(self, stage: str, field_name: str) -> LineageWalk:
        """Full causal chain behind the value of ``field_name`` at ``stage``.

        Starts at the field's last writer and walks backward along producer
        edges, nearest cause first. Unknown (stage, field) pairs give an
        empty walk; a field whose writer has no upstream producers gives a
        single-step walk.
        """
        return LineageWalk(
            self._graph,
            self.last_writer(stage, field_name),
            neighbours=self._graph.upstream_edges,
            pick=lambda edge: edge.source,
        )

    def impact_of(self, stage: str, field_name: str) -> LineageWalk:
        """Everything downstream of the value of ``field_name`` at ``stage``.

        Starts at the field's last writer and walks forward along consumer
        edges. Same laziness and empty-on-miss semantics as causal_chain.
        """
        return LineageWalk(
            self._graph,
            self.last_writer(stage, field_name),
            neighbours=self._graph.downstream_edges,
            pick=lambda edge: edge.target,
        )
