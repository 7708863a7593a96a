"""
FieldTrace: field-level data lineage for multi-stage pipelines.

Validates the field operations each pipeline stage declares, stitches
them into one pipeline-wide provenance graph, and answers "where did
this field come from" questions against it.
"""

__version__ = "0.1.0"
