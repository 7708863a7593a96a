"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.

Import patterns:
    from fieldtrace.contracts import FieldOperation, StageDeclaration, InvalidLineageError
"""

from fieldtrace.contracts.enums import EdgeScope, OperationKind
from fieldtrace.contracts.errors import (
    InvalidFieldOperations,
    InvalidLineageError,
    InvalidOperationError,
    LineageCompositionError,
    WriterNotSetError,
    render_invalid_lineage_message,
)
from fieldtrace.contracts.operations import FieldOperation
from fieldtrace.contracts.stage import StageDeclaration
from fieldtrace.contracts.types import FieldName, OperationName, StageName

__all__ = [
    "EdgeScope",
    "FieldName",
    "FieldOperation",
    "InvalidFieldOperations",
    "InvalidLineageError",
    "InvalidOperationError",
    "LineageCompositionError",
    "OperationKind",
    "OperationName",
    "StageDeclaration",
    "StageName",
    "WriterNotSetError",
    "render_invalid_lineage_message",
]
