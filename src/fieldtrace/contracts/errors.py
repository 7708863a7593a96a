"""Error contracts for field lineage.

Construction, validation, and composition each have their own failure
type. Validation failures are never raised per field: they are collected
into InvalidFieldOperations records and raised once, for the whole
pipeline, as InvalidLineageError.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from fieldtrace.contracts.types import FieldName, OperationName, StageName


class InvalidOperationError(ValueError):
    """Raised when a field operation or stage declaration is malformed.

    Examples: a transform with no inputs, a duplicate output field, two
    operations sharing a name within one stage.
    """

    pass


class LineageCompositionError(ValueError):
    """Raised when validated stages cannot be stitched into one graph.

    This is a configuration defect of the pipeline (e.g., a field both
    boundary schemas declare that nothing upstream produces). Never retried.
    """

    pass


class WriterNotSetError(RuntimeError):
    """Raised when a provenance token is written with no current writer."""

    pass


def _freeze(entries: Mapping[FieldName, tuple[OperationName, ...]] | None) -> Mapping[FieldName, tuple[OperationName, ...]]:
    if entries is None:
        return MappingProxyType({})
    return MappingProxyType({name: tuple(operations) for name, operations in entries.items()})


@dataclass(frozen=True, eq=True)
class InvalidFieldOperations:
    """Invalid field references found in one stage.

    Both mappings go from field name to the operation names that referenced
    the field invalidly, in declaration order. Iteration order of the
    mappings is the order fields were first flagged.

    Attributes:
        invalid_inputs: Inputs neither in the stage input schema nor
            produced by an earlier operation of the stage.
        invalid_outputs: Outputs neither consumed by a later operation of
            the stage nor part of the stage output schema.
    """

    invalid_inputs: Mapping[FieldName, tuple[OperationName, ...]] = field(default_factory=dict)
    invalid_outputs: Mapping[FieldName, tuple[OperationName, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "invalid_inputs", _freeze(self.invalid_inputs))
        object.__setattr__(self, "invalid_outputs", _freeze(self.invalid_outputs))

    def __hash__(self) -> int:
        return hash((frozenset(self.invalid_inputs.items()), frozenset(self.invalid_outputs.items())))

    def __reduce__(self) -> tuple[Any, ...]:
        # mappingproxy cannot be pickled; rebuild from plain dicts
        return (type(self), (dict(self.invalid_inputs), dict(self.invalid_outputs)))

    @property
    def is_empty(self) -> bool:
        """True when the stage has no invalid field references."""
        return not self.invalid_inputs and not self.invalid_outputs

    def to_dict(self) -> dict[str, dict[str, list[str]]]:
        """Plain-dict form for JSON output."""
        return {
            "invalid_inputs": {name: list(ops) for name, ops in self.invalid_inputs.items()},
            "invalid_outputs": {name: list(ops) for name, ops in self.invalid_outputs.items()},
        }


_INVALID_OUTPUTS_TEMPLATE = (
    "Outputs of following operations are neither used by subsequent operations "
    "in that stage nor are part of the output schema of that stage: {}. "
)
_INVALID_INPUTS_TEMPLATE = (
    "Inputs of following operations are neither part of the input schema of a stage "
    "nor are generated by any previous operations recorded by that stage: {}. "
)


def _render_stages(invalids: Mapping[StageName, Mapping[FieldName, tuple[OperationName, ...]]]) -> str:
    stage_parts: list[str] = []
    for stage_name, fields in invalids.items():
        entries = [f"[operation:{operation}, field:{field_name}]" for field_name, operations in fields.items() for operation in operations]
        stage_parts.append(f"<stage:{stage_name}, {', '.join(entries)}>")
    return ", ".join(stage_parts)


def render_invalid_lineage_message(invalids: Mapping[StageName, InvalidFieldOperations]) -> str:
    """Render the aggregated validation failure message.

    The message follows the iteration order of ``invalids``; callers must
    pass an insertion-ordered mapping (a plain dict is) for the rendering
    to be reproducible.

    Args:
        invalids: Stage name to that stage's invalid field operations

    Returns:
        Outputs sentence (if any stage has invalid outputs) followed by the
        inputs sentence (if any stage has invalid inputs).
    """
    invalid_outputs = {stage: record.invalid_outputs for stage, record in invalids.items() if record.invalid_outputs}
    invalid_inputs = {stage: record.invalid_inputs for stage, record in invalids.items() if record.invalid_inputs}

    message = ""
    if invalid_outputs:
        message += _INVALID_OUTPUTS_TEMPLATE.format(_render_stages(invalid_outputs))
    if invalid_inputs:
        message += _INVALID_INPUTS_TEMPLATE.format(_render_stages(invalid_inputs))
    return message


class InvalidLineageError(Exception):
    """Raised once per pipeline when any stage declares invalid field operations.

    Carries the structured per-stage records alongside the rendered
    message so UIs can present either without re-parsing.

    Attributes:
        invalid_field_operations: Read-only mapping of stage name to its
            InvalidFieldOperations, in the order supplied
    """

    def __init__(self, invalids: Mapping[StageName, InvalidFieldOperations]) -> None:
        self.invalid_field_operations: Mapping[StageName, InvalidFieldOperations] = MappingProxyType(dict(invalids))
        super().__init__(render_invalid_lineage_message(self.invalid_field_operations))

    def __reduce__(self) -> tuple[Any, ...]:
        return (type(self), (dict(self.invalid_field_operations),))

    @property
    def stage_names(self) -> tuple[StageName, ...]:
        """Names of the stages that failed validation, in order."""
        return tuple(self.invalid_field_operations)
