# src/fieldtrace/cli_formatters.py
"""Console and JSON renderers for CLI lineage output."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from fieldtrace.contracts import InvalidLineageError
from fieldtrace.core.lineage import LineageStep
from fieldtrace.engine import LineageResult


def invalid_lineage_details(error: InvalidLineageError) -> list[str]:
    """One line per invalid (stage, field, operation) reference."""
    details: list[str] = []
    for stage, record in error.invalid_field_operations.items():
        for field_name, operations in record.invalid_outputs.items():
            details.extend(f"{stage}: output '{field_name}' of '{op}' is never used" for op in operations)
        for field_name, operations in record.invalid_inputs.items():
            details.extend(f"{stage}: input '{field_name}' of '{op}' has no source" for op in operations)
    return details


def format_graph_text(result: LineageResult) -> list[str]:
    lines = [f"Pipeline: {result.pipeline} ({result.fingerprint[:12]})"]
    for edge in result.graph.edges():
        marker = "=>" if edge.scope == "inter_stage" else "->"
        lines.append(f"  {edge.source} {marker} {edge.target}  [{edge.field}]")
    if result.graph.edge_count == 0:
        lines.append("  (no edges)")
    return lines


def format_graph_json(result: LineageResult) -> str:
    return json.dumps(result.to_dict(), indent=2)


def format_steps_text(steps: Iterable[LineageStep]) -> list[str]:
    lines: list[str] = []
    for step in steps:
        op = step.operation
        indent = "  " * step.depth
        io_parts = []
        if op.inputs:
            io_parts.append(f"in={list(op.inputs)}")
        if op.outputs:
            io_parts.append(f"out={list(op.outputs)}")
        description = f" - {op.description}" if op.description else ""
        lines.append(f"{indent}{step.ref} ({op.kind.value}) {' '.join(io_parts)}{description}")
    return lines


def format_steps_json(stage: str, field_name: str, mode: str, steps: Iterable[LineageStep]) -> str:
    payload: dict[str, Any] = {
        "stage": stage,
        "field": field_name,
        "mode": mode,
        "operations": [step.to_dict() for step in steps],
    }
    return json.dumps(payload, indent=2)
