"""Field operation model.

A FieldOperation is one declared unit of field-level provenance inside a
pipeline stage. The three kinds form a closed set, so a single frozen
dataclass carries a kind tag and kind-specific rules are selected by
matching on it:

    READ       outputs only   data entering the stage
    TRANSFORM  inputs+outputs computation over existing fields
    WRITE      inputs only    data leaving the stage
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from fieldtrace.contracts.enums import OperationKind
from fieldtrace.contracts.errors import InvalidOperationError
from fieldtrace.contracts.types import FieldName, OperationName


def _field_tuple(operation: str, role: str, fields: Iterable[str]) -> tuple[FieldName, ...]:
    # A bare string is iterable but is never a field list
    if isinstance(fields, str):
        raise InvalidOperationError(f"Operation '{operation}' {role} fields must be a list of names, got the string {fields!r}")
    return tuple(FieldName(f) for f in fields)


def _check_fields(operation: str, role: str, fields: tuple[FieldName, ...], *, required: bool) -> None:
    if required and not fields:
        raise InvalidOperationError(f"Operation '{operation}' must declare at least one {role} field")
    for field_name in fields:
        if not isinstance(field_name, str) or not field_name:
            raise InvalidOperationError(f"Operation '{operation}' has an empty or non-string {role} field name: {field_name!r}")
    seen: set[str] = set()
    duplicates: list[str] = []
    for field_name in fields:
        if field_name in seen and field_name not in duplicates:
            duplicates.append(field_name)
        seen.add(field_name)
    if duplicates:
        raise InvalidOperationError(f"Operation '{operation}' declares duplicate {role} fields: {duplicates}")


@dataclass(frozen=True, slots=True)
class FieldOperation:
    """One declared field operation.

    Frozen after construction. Field lists are stored as tuples, so callers
    cannot mutate them; equality and hashing are structural over every
    attribute, which makes operations usable as graph-node payloads and in
    test assertions.

    Attributes:
        name: Operation name, unique within the declaring stage
        kind: READ, TRANSFORM, or WRITE
        description: Human-readable description
        inputs: Ordered input field names (empty for READ)
        outputs: Ordered output field names (empty for WRITE)

    Raises:
        InvalidOperationError: If the field lists violate the kind's rules
    """

    name: OperationName
    kind: OperationKind
    description: str = ""
    inputs: tuple[FieldName, ...] = ()
    outputs: tuple[FieldName, ...] = ()

    def __post_init__(self) -> None:
        # Accept any non-string iterable at construction, store tuples
        object.__setattr__(self, "inputs", _field_tuple(self.name, "input", self.inputs))
        object.__setattr__(self, "outputs", _field_tuple(self.name, "output", self.outputs))
        try:
            object.__setattr__(self, "kind", OperationKind(self.kind))
        except ValueError:
            raise InvalidOperationError(
                f"Operation '{self.name}' has unknown kind {self.kind!r}; expected one of {[k.value for k in OperationKind]}"
            ) from None

        if not isinstance(self.name, str) or not self.name:
            raise InvalidOperationError(f"Operation name must be a non-empty string, got {self.name!r}")

        match self.kind:
            case OperationKind.READ:
                if self.inputs:
                    raise InvalidOperationError(f"Read operation '{self.name}' cannot declare input fields: {list(self.inputs)}")
                _check_fields(self.name, "output", self.outputs, required=True)
            case OperationKind.TRANSFORM:
                _check_fields(self.name, "input", self.inputs, required=True)
                _check_fields(self.name, "output", self.outputs, required=True)
            case OperationKind.WRITE:
                if self.outputs:
                    raise InvalidOperationError(f"Write operation '{self.name}' cannot declare output fields: {list(self.outputs)}")
                _check_fields(self.name, "input", self.inputs, required=True)

    @classmethod
    def read(cls, name: str, outputs: Iterable[str], description: str = "") -> FieldOperation:
        """Create a READ operation producing ``outputs``."""
        return cls(
            name=OperationName(name),
            kind=OperationKind.READ,
            description=description,
            outputs=_field_tuple(name, "output", outputs),
        )

    @classmethod
    def transform(
        cls,
        name: str,
        inputs: Iterable[str],
        outputs: Iterable[str],
        description: str = "",
    ) -> FieldOperation:
        """Create a TRANSFORM operation from ``inputs`` to ``outputs``."""
        return cls(
            name=OperationName(name),
            kind=OperationKind.TRANSFORM,
            description=description,
            inputs=_field_tuple(name, "input", inputs),
            outputs=_field_tuple(name, "output", outputs),
        )

    @classmethod
    def write(cls, name: str, inputs: Iterable[str], description: str = "") -> FieldOperation:
        """Create a WRITE operation consuming ``inputs``."""
        return cls(
            name=OperationName(name),
            kind=OperationKind.WRITE,
            description=description,
            inputs=_field_tuple(name, "input", inputs),
        )

    def to_dict(self) -> dict[str, Any]:
        """Operation descriptor for lineage output."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "description": self.description,
            "inputs": list(self.inputs),
            "outputs": list(self.outputs),
        }
