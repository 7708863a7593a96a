# src/fieldtrace/core/lineage/validator.py
"""Stage operations validation.

Validation classifies field references; it never raises per violation.
Inputs are judged in a single forward pass against the running
``produced_by`` state. Outputs can only be judged once the whole stage has
been seen (a later operation may still consume them), so they are judged
in a second pass. Collapsing the two passes changes which side of the
report forward references land on.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from fieldtrace.contracts import (
    FieldName,
    InvalidFieldOperations,
    InvalidLineageError,
    OperationName,
    StageDeclaration,
    StageName,
)
from fieldtrace.core.lineage.stage_graph import StageGraphBuilder, StageOperationGraph

logger = structlog.get_logger(__name__)


class StageOperationsValidator:
    """Validates one stage's operations against its input/output schemas.

    Example:
        validator = StageOperationsValidator(stage)
        invalids = validator.validate()
        if not invalids.is_empty:
            ...
    """

    def __init__(self, stage: StageDeclaration) -> None:
        self._stage = stage

    @property
    def stage(self) -> StageDeclaration:
        return self._stage

    def validate(self) -> InvalidFieldOperations:
        """Classify every field reference of the stage.

        Returns:
            InvalidFieldOperations, empty when the stage is fully valid.
            Running this twice over the same declaration yields equal records.
        """
        builder = StageGraphBuilder(self._stage)
        invalid_inputs: dict[FieldName, list[OperationName]] = {}

        # Pass 1: inputs, against the state just before each operation
        for operation in self._stage.operations:
            resolution = builder.add_operation(operation)
            for field_name in resolution.unresolved_inputs:
                invalid_inputs.setdefault(field_name, []).append(operation.name)

        # Pass 2: outputs, against the complete stage history
        invalid_outputs = {
            field_name: (producer,)
            for field_name, producer in builder.unconsumed_outputs().items()
            if field_name not in self._stage.output_schema
        }

        return InvalidFieldOperations(
            invalid_inputs={f: tuple(ops) for f, ops in invalid_inputs.items()},
            invalid_outputs=invalid_outputs,
        )


def validate_stage(stage: StageDeclaration | StageOperationGraph) -> InvalidFieldOperations:
    """Validate a stage declaration (or the declaration behind a built graph)."""
    declaration = stage.stage if isinstance(stage, StageOperationGraph) else stage
    return StageOperationsValidator(declaration).validate()


def collect_invalid_stages(
    stages: Iterable[StageDeclaration | StageOperationGraph],
) -> dict[StageName, InvalidFieldOperations]:
    """Validate every stage, keeping only those with violations.

    The returned dict preserves pipeline order so the aggregated error
    message is reproducible.
    """
    invalids: dict[StageName, InvalidFieldOperations] = {}
    for stage in stages:
        record = validate_stage(stage)
        name = stage.stage.name if isinstance(stage, StageOperationGraph) else stage.name
        if not record.is_empty:
            invalids[name] = record
    return invalids


def validate_pipeline(stages: Iterable[StageDeclaration | StageOperationGraph]) -> None:
    """Validate the entire pipeline and report every problem at once.

    Raises:
        InvalidLineageError: If any stage declares invalid field operations
    """
    invalids = collect_invalid_stages(stages)
    if invalids:
        logger.warning(
            "Field lineage validation failed",
            invalid_stages=list(invalids),
            invalid_inputs=sum(len(r.invalid_inputs) for r in invalids.values()),
            invalid_outputs=sum(len(r.invalid_outputs) for r in invalids.values()),
        )
        raise InvalidLineageError(invalids)
