"""Stage declaration: the input contract of the lineage engine."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from fieldtrace.contracts.errors import InvalidOperationError
from fieldtrace.contracts.operations import FieldOperation
from fieldtrace.contracts.types import FieldName, OperationName, StageName


def _schema(stage: str, role: str, fields: Iterable[str]) -> frozenset[FieldName]:
    if isinstance(fields, str):
        raise InvalidOperationError(f"Stage '{stage}' {role} must be a collection of field names, got the string {fields!r}")
    return frozenset(FieldName(f) for f in fields)


@dataclass(frozen=True, slots=True)
class StageDeclaration:
    """Everything one pipeline stage declares about its fields.

    Attributes:
        name: Stage name, unique within the pipeline
        operations: Field operations in author-declared order
        input_schema: Field names the stage receives
        output_schema: Field names the stage emits

    Raises:
        InvalidOperationError: If the name is empty, a schema is a bare string,
            or two operations share a name
    """

    name: StageName
    operations: tuple[FieldOperation, ...] = ()
    input_schema: frozenset[FieldName] = frozenset()
    output_schema: frozenset[FieldName] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "operations", tuple(self.operations))
        object.__setattr__(self, "input_schema", _schema(self.name, "input_schema", self.input_schema))
        object.__setattr__(self, "output_schema", _schema(self.name, "output_schema", self.output_schema))

        if not isinstance(self.name, str) or not self.name:
            raise InvalidOperationError(f"Stage name must be a non-empty string, got {self.name!r}")

        seen: set[OperationName] = set()
        for operation in self.operations:
            if operation.name in seen:
                raise InvalidOperationError(f"Stage '{self.name}' declares operation '{operation.name}' more than once")
            seen.add(operation.name)

    @classmethod
    def of(
        cls,
        name: str,
        operations: Iterable[FieldOperation],
        *,
        input_schema: Iterable[str] = (),
        output_schema: Iterable[str] = (),
    ) -> StageDeclaration:
        """Build a declaration from plain strings."""
        return cls(
            name=StageName(name),
            operations=tuple(operations),
            input_schema=_schema(name, "input_schema", input_schema),
            output_schema=_schema(name, "output_schema", output_schema),
        )

    def get_operation(self, name: str) -> FieldOperation:
        """Look up an operation by name.

        Raises:
            KeyError: If the stage declares no such operation
        """
        for operation in self.operations:
            if operation.name == name:
                return operation
        raise KeyError(f"Operation not found in stage '{self.name}': {name}")
