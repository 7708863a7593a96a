"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of semantically different string values.
"""

from typing import NewType

StageName = NewType("StageName", str)
"""User-defined pipeline stage name (e.g., 'parse', 'enrich')"""

OperationName = NewType("OperationName", str)
"""Field operation name, unique within its stage (e.g., 'split')"""

FieldName = NewType("FieldName", str)
"""Name of a data field flowing through the pipeline (e.g., 'customer_id')"""
