# tests/unit/cli/test_cli.py
"""Tests for the fieldtrace CLI."""

import copy
import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from fieldtrace.cli import app
from fieldtrace.engine import LineageEngine

runner = CliRunner()

# Quiet logging keeps stdout parseable when the runner mixes streams
PIPELINE = {
    "logging": {"level": "WARNING"},
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
                "name": "enrich",
                "input_schema": ["id", "first", "last"],
                "output_schema": ["id", "full_name"],
                "operations": [
                    {"name": "concat", "kind": "transform", "inputs": ["first", "last"], "outputs": ["full_name"]},
                ],
            },
            {
                "name": "publish",
                "input_schema": ["id", "full_name"],
                "operations": [
                    {"name": "store", "kind": "write", "inputs": ["id", "full_name"], "description": "Write to warehouse"},
                ],
            },
        ],
    },
}


@pytest.fixture
def pipeline_file(write_settings) -> Path:
    return write_settings(PIPELINE)


class TestCLIBasics:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "fieldtrace" in result.output.lower()

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "validate" in result.output
        assert "graph" in result.output
        assert "explain" in result.output

    def test_missing_env_file_fails(self, tmp_path: Path, pipeline_file: Path) -> None:
        result = runner.invoke(app, ["--env-file", str(tmp_path / "nope.env"), "validate", "-s", str(pipeline_file)])

        assert result.exit_code == 1
        assert ".env file not found" in result.output


class TestValidateCommand:
    def test_valid_pipeline(self, pipeline_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(pipeline_file)])

        assert result.exit_code == 0
        assert "Field lineage valid" in result.output
        assert "parse, enrich, publish" in result.output
        assert "Fingerprint:" in result.output

    def test_missing_settings_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(tmp_path / "absent.yaml")])

        assert result.exit_code == 1
        assert "File Not Found" in result.output

    def test_bad_operation_shape(self, write_settings) -> None:
        data = {"pipeline": {"stages": [{"name": "s", "operations": [{"name": "load", "kind": "read", "inputs": ["x"], "outputs": ["y"]}]}]}}

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(write_settings(data))])

        assert result.exit_code == 1
        assert "Configuration Validation Failed" in result.output

    def test_invalid_lineage(self, write_settings) -> None:
        data = {
            "logging": {"level": "ERROR"},
            "pipeline": {
                "stages": [
                    {"name": "s", "operations": [{"name": "store", "kind": "write", "inputs": ["ghost"]}]},
                ],
            },
        }

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(write_settings(data))])

        assert result.exit_code == 1
        assert "Invalid Field Lineage" in result.output
        assert "ghost" in result.output

    def test_composition_error(self, write_settings) -> None:
        data = {
            "logging": {"level": "ERROR"},
            "pipeline": {
                "stages": [
                    {
                        "name": "first",
                        "input_schema": ["id"],
                        "output_schema": ["id"],
                        "operations": [{"name": "audit", "kind": "write", "inputs": ["id"]}],
                    },
                    {
                        "name": "second",
                        "input_schema": ["id"],
                        "operations": [{"name": "store", "kind": "write", "inputs": ["id"]}],
                    },
                ],
            },
        }

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(write_settings(data))])

        assert result.exit_code == 1
        assert "Lineage Composition Error" in result.output


class TestValidateSeveralPipelines:
    @pytest.fixture
    def orders_file(self, write_settings) -> Path:
        data = copy.deepcopy(PIPELINE)
        data["pipeline"]["name"] = "orders"
        return write_settings(data, name="orders.yaml")

    def test_each_pipeline_reported(self, pipeline_file: Path, orders_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(pipeline_file), "-s", str(orders_file)])

        assert result.exit_code == 0
        assert result.output.count("Field lineage valid") == 1
        assert result.output.index("Pipeline: customers") < result.output.index("Pipeline: orders")
        assert result.output.count("Fingerprint:") == 2

    def test_worker_count_comes_from_settings(self, write_settings, orders_file: Path) -> None:
        data = copy.deepcopy(PIPELINE)
        data["concurrency"] = {"max_workers": 2}
        primary = write_settings(data)
        compute_many = LineageEngine.compute_many

        with patch.object(LineageEngine, "compute_many", autospec=True, side_effect=compute_many) as spy:
            result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(primary), "-s", str(orders_file)])

        assert result.exit_code == 0
        assert spy.call_args.kwargs["max_workers"] == 2
        assert list(spy.call_args.args[1]) == ["customers", "orders"]

    def test_duplicate_pipeline_names_rejected(self, write_settings, pipeline_file: Path) -> None:
        twin = write_settings(PIPELINE, name="twin.yaml")

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(pipeline_file), "-s", str(twin)])

        assert result.exit_code == 1
        assert "Duplicate Pipeline Names" in result.output

    def test_one_invalid_pipeline_fails_the_run(self, write_settings, pipeline_file: Path) -> None:
        data = {
            "logging": {"level": "ERROR"},
            "pipeline": {
                "name": "broken",
                "stages": [{"name": "s", "operations": [{"name": "store", "kind": "write", "inputs": ["ghost"]}]}],
            },
        }

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(pipeline_file), "-s", str(write_settings(data, name="broken.yaml"))])

        assert result.exit_code == 1
        assert "Invalid Field Lineage" in result.output


class TestGraphCommand:
    def test_text_output(self, pipeline_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "graph", "-s", str(pipeline_file)])

        assert result.exit_code == 0
        assert "parse.load -> parse.split  [raw]" in result.output
        assert "parse.split => enrich.concat  [first]" in result.output
        assert "parse.load => publish.store  [id]" in result.output

    def test_json_output(self, pipeline_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "graph", "-s", str(pipeline_file), "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["pipeline"] == "customers"
        assert data["canonical_version"] == "sha256-rfc8785-v1"
        assert len(data["edges"]) == 5
        assert [s["name"] for s in data["stages"]] == ["parse", "enrich", "publish"]


class TestExplainCommand:
    def test_causes(self, pipeline_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "explain", "-s", str(pipeline_file), "--stage", "enrich", "--field", "full_name"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0].startswith("enrich.concat (transform)")
        assert lines[1].startswith("  parse.split (transform)")
        assert lines[2].startswith("    parse.load (read)")

    def test_impact_json(self, pipeline_file: Path) -> None:
        result = runner.invoke(
            app,
            ["--no-dotenv", "explain", "-s", str(pipeline_file), "--stage", "parse", "--field", "id", "--impact", "-f", "json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["mode"] == "impact"
        assert [(op["stage"], op["name"]) for op in data["operations"]] == [
            ("parse", "load"),
            ("parse", "split"),
            ("publish", "store"),
            ("enrich", "concat"),
        ]

    def test_unknown_field(self, pipeline_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "explain", "-s", str(pipeline_file), "--stage", "parse", "--field", "nope"])

        assert result.exit_code == 0
        assert "No lineage recorded for field 'nope' at stage 'parse'." in result.output
