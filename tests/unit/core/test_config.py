# tests/unit/core/test_config.py
"""Tests for configuration schema and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from fieldtrace.contracts import OperationKind, StageDeclaration
from fieldtrace.core.config import (
    ConcurrencySettings,
    FieldTraceSettings,
    LoggingSettings,
    OperationSettings,
    PipelineSettings,
    StageSettings,
    load_settings,
)

CUSTOMERS = {
    "pipeline": {
        "name": "customers",
        "stages": [
            {
                "name": "parse",
                "output_schema": ["id", "first", "last"],
                "operations": [
                    {"name": "load", "kind": "read", "outputs": ["id", "raw"]},
                    {"name": "split", "kind": "transform", "inputs": ["raw"], "outputs": ["first", "last"]},
                ],
            },
            {
                "name": "publish",
                "input_schema": ["id", "first", "last"],
                "operations": [
                    {"name": "store", "kind": "write", "inputs": ["id", "first", "last"]},
                ],
            },
        ],
    },
}


class TestOperationSettings:
    def test_builds_operation(self) -> None:
        settings = OperationSettings(name="split", kind="transform", inputs=["raw"], outputs=["a", "b"])

        operation = settings.to_operation()

        assert operation.kind is OperationKind.TRANSFORM
        assert operation.inputs == ("raw",)
        assert operation.outputs == ("a", "b")

    def test_read_with_inputs_rejected(self) -> None:
        with pytest.raises(ValidationError, match="cannot declare input fields"):
            OperationSettings(name="load", kind="read", inputs=["x"], outputs=["y"])

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OperationSettings(name="load", kind="delete", inputs=["x"])

    def test_extra_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OperationSettings(name="load", kind="read", outputs=["x"], fields=["x"])

    def test_frozen(self) -> None:
        settings = OperationSettings(name="load", kind="read", outputs=["x"])

        with pytest.raises(ValidationError):
            settings.name = "other"


class TestStageAndPipelineSettings:
    def test_duplicate_operation_names_rejected(self) -> None:
        op = {"name": "load", "kind": "read", "outputs": ["x"]}

        with pytest.raises(ValidationError, match="Duplicate operation name"):
            StageSettings(name="s", operations=[op, op])

    def test_duplicate_stage_names_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate stage name"):
            PipelineSettings(stages=[{"name": "s"}, {"name": "s"}])

    def test_pipeline_needs_a_stage(self) -> None:
        with pytest.raises(ValidationError):
            PipelineSettings(stages=[])

    def test_to_stages_preserves_order(self) -> None:
        stages = FieldTraceSettings(**CUSTOMERS).pipeline.to_stages()

        assert [s.name for s in stages] == ["parse", "publish"]
        assert all(isinstance(s, StageDeclaration) for s in stages)
        assert stages[0].output_schema == frozenset({"id", "first", "last"})
        assert [op.name for op in stages[0].operations] == ["load", "split"]


class TestAmbientSettings:
    def test_defaults(self) -> None:
        settings = FieldTraceSettings(**CUSTOMERS)

        assert settings.logging == LoggingSettings()
        assert settings.logging.level == "INFO"
        assert settings.concurrency.max_workers == 4

    def test_level_is_case_insensitive(self) -> None:
        assert LoggingSettings(level="debug").level == "DEBUG"

    def test_invalid_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoggingSettings(level="LOUD")

    def test_max_workers_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ConcurrencySettings(max_workers=0)


class TestLoadSettings:
    def test_loads_yaml(self, write_settings) -> None:
        path = write_settings(CUSTOMERS)

        settings = load_settings(path)

        assert settings.pipeline.name == "customers"
        assert [s.name for s in settings.pipeline.stages] == ["parse", "publish"]
        assert settings.pipeline.stages[0].operations[1].outputs == ["first", "last"]

    def test_environment_overrides_file(self, write_settings, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FIELDTRACE_LOGGING__level", "DEBUG")
        path = write_settings({**CUSTOMERS, "logging": {"level": "INFO"}})

        settings = load_settings(path)

        assert settings.logging.level == "DEBUG"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_bad_operation_surfaces_as_validation_error(self, write_settings) -> None:
        data = {
            "pipeline": {
                "stages": [
                    {"name": "s", "operations": [{"name": "store", "kind": "write", "inputs": ["a"], "outputs": ["b"]}]},
                ],
            },
        }

        with pytest.raises(ValidationError, match="cannot declare output fields"):
            load_settings(write_settings(data))
