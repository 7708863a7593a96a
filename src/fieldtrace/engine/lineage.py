"""Lineage engine: one entry point from stage declarations to a lineage record.

Flow for one pipeline:
    1. Build every stage's operation graph
    2. Validate the whole pipeline (one aggregated error for all stages)
    3. Compose the pipeline-wide graph
    4. Fingerprint it and hand it to the publisher (fire-and-forget)

Pipelines are independent of each other, so compute_many() runs them on a
thread pool without any coordination.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import structlog

from fieldtrace.contracts import StageDeclaration
from fieldtrace.core.canonical import CANONICAL_VERSION, lineage_fingerprint
from fieldtrace.core.lineage import (
    LineageQueryEngine,
    PipelineLineageGraph,
    build_stage_graph,
    compose_pipeline,
)
from fieldtrace.core.logging import lineage_context

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class LineageResult:
    """Composed lineage of one pipeline.

    Attributes:
        pipeline: Pipeline name
        graph: Read-only pipeline lineage graph
        fingerprint: SHA-256 of the canonical graph topology
    """

    pipeline: str
    graph: PipelineLineageGraph
    fingerprint: str

    @property
    def queries(self) -> LineageQueryEngine:
        return LineageQueryEngine(self.graph)

    def to_dict(self) -> dict[str, Any]:
        """Serializable lineage record for the lineage store."""
        return {
            "pipeline": self.pipeline,
            "fingerprint": self.fingerprint,
            "canonical_version": CANONICAL_VERSION,
            **self.graph.to_dict(),
        }


@runtime_checkable
class LineagePublisher(Protocol):
    """Hand-off point to an external lineage store.

    Implementations must not assume they are awaited: publish failures are
    logged by the engine and never fail the lineage computation.
    """

    name: str

    def publish(self, result: LineageResult) -> None:
        """Accept a composed lineage record."""
        ...


class LineageEngine:
    """Computes field lineage for pipelines.

    Example:
        engine = LineageEngine()
        result = engine.compute("customers", stages)
        for step in result.queries.causal_chain("enrich", "full_name"):
            ...
    """

    def __init__(self, *, publishers: Sequence[LineagePublisher] = ()) -> None:
        self._publishers = tuple(publishers)

    def compute(self, pipeline: str, stages: Sequence[StageDeclaration]) -> LineageResult:
        """Validate and compose one pipeline.

        Raises:
            InvalidLineageError: If any stage declares invalid field operations
            LineageCompositionError: If stages cannot be stitched together
        """
        with lineage_context(pipeline=pipeline):
            logger.debug("Computing field lineage", stages=len(stages))

            graphs = [build_stage_graph(stage) for stage in stages]
            graph = compose_pipeline(graphs)
            result = LineageResult(pipeline=pipeline, graph=graph, fingerprint=lineage_fingerprint(graph))

            logger.info(
                "Field lineage computed",
                operations=graph.node_count,
                edges=graph.edge_count,
                fingerprint=result.fingerprint,
            )
            self._publish(result)
        return result

    def compute_many(
        self,
        pipelines: Mapping[str, Sequence[StageDeclaration]],
        *,
        max_workers: int = 4,
    ) -> dict[str, LineageResult]:
        """Compute lineage for independent pipelines in parallel.

        Args:
            pipelines: Pipeline name -> stages in pipeline order
            max_workers: Thread pool size

        Returns:
            Results keyed by pipeline name, in input order

        Raises:
            The first failure in input order (InvalidLineageError or
            LineageCompositionError), after all submitted work finished
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures: dict[str, Future[LineageResult]] = {name: pool.submit(self.compute, name, stages) for name, stages in pipelines.items()}

        return {name: future.result() for name, future in futures.items()}

    def _publish(self, result: LineageResult) -> None:
        for publisher in self._publishers:
            try:
                publisher.publish(result)
            except Exception as e:
                # Publishing is a hand-off: a store outage must not fail lineage
                logger.warning(
                    "Lineage publisher failed",
                    publisher=publisher.name,
                    pipeline=result.pipeline,
                    error=str(e),
                )
