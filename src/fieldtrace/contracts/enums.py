"""Kinds and scopes used across subsystem boundaries."""

from enum import StrEnum


class OperationKind(StrEnum):
    """Kind of a declared field operation.

    Values:
        READ: Data entering a stage from an external source (outputs only)
        TRANSFORM: Computation consuming existing fields and producing new ones
        WRITE: Data leaving a stage to an external sink (inputs only)
    """

    READ = "read"
    TRANSFORM = "transform"
    WRITE = "write"


class EdgeScope(StrEnum):
    """Where a lineage edge was established.

    Stored on every edge of the pipeline lineage graph.
    """

    INTRA_STAGE = "intra_stage"
    INTER_STAGE = "inter_stage"
