"""
Configuration schema and loading for FieldTrace pipelines.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Example YAML:
    logging:
      level: INFO
      json_output: false
    concurrency:
      max_workers: 4
    pipeline:
      name: customers
      stages:
        - name: parse
          input_schema: [raw]
          output_schema: [first, last]
          operations:
            - name: split
              kind: transform
              description: Split raw name
              inputs: [raw]
              outputs: [first, last]
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from fieldtrace.contracts import (
    FieldName,
    FieldOperation,
    InvalidOperationError,
    OperationKind,
    OperationName,
    StageDeclaration,
    StageName,
)


class OperationSettings(BaseModel):
    """One declared field operation.

    Checked by building the FieldOperation itself, so a malformed
    declaration fails at load time with the same message the model raises.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(min_length=1, description="Operation name, unique within the stage")
    kind: OperationKind = Field(description="read, transform, or write")
    description: str = Field(default="", description="Human-readable description")
    inputs: list[str] = Field(default_factory=list, description="Ordered input field names")
    outputs: list[str] = Field(default_factory=list, description="Ordered output field names")

    @model_validator(mode="after")
    def validate_operation_shape(self) -> "OperationSettings":
        """Apply the kind-specific field rules."""
        try:
            self.to_operation()
        except InvalidOperationError as e:
            # ValueError inside a validator becomes a ValidationError entry
            raise ValueError(str(e)) from e
        return self

    def to_operation(self) -> FieldOperation:
        return FieldOperation(
            name=OperationName(self.name),
            kind=self.kind,
            description=self.description,
            inputs=tuple(FieldName(f) for f in self.inputs),
            outputs=tuple(FieldName(f) for f in self.outputs),
        )


class StageSettings(BaseModel):
    """One pipeline stage with its schemas and declared operations."""

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(min_length=1, description="Stage name, unique within the pipeline")
    input_schema: list[str] = Field(default_factory=list, description="Field names the stage receives")
    output_schema: list[str] = Field(default_factory=list, description="Field names the stage emits")
    operations: list[OperationSettings] = Field(default_factory=list, description="Operations in declared order")

    @field_validator("operations")
    @classmethod
    def validate_operation_names_unique(cls, v: list[OperationSettings]) -> list[OperationSettings]:
        """Operation names must be unique within the stage."""
        seen: set[str] = set()
        for op in v:
            if op.name in seen:
                raise ValueError(f"Duplicate operation name: '{op.name}'")
            seen.add(op.name)
        return v

    def to_stage(self) -> StageDeclaration:
        return StageDeclaration(
            name=StageName(self.name),
            operations=tuple(op.to_operation() for op in self.operations),
            input_schema=frozenset(FieldName(f) for f in self.input_schema),
            output_schema=frozenset(FieldName(f) for f in self.output_schema),
        )


class PipelineSettings(BaseModel):
    """Ordered stages of one pipeline; stage N feeds stage N+1."""

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(default="pipeline", min_length=1, description="Pipeline name used in logs and output")
    stages: list[StageSettings] = Field(min_length=1, description="Stages in pipeline order")

    @field_validator("stages")
    @classmethod
    def validate_stage_names_unique(cls, v: list[StageSettings]) -> list[StageSettings]:
        """Stage names must be unique within the pipeline."""
        seen: set[str] = set()
        for stage in v:
            if stage.name in seen:
                raise ValueError(f"Duplicate stage name: '{stage.name}'")
            seen.add(stage.name)
        return v

    def to_stages(self) -> list[StageDeclaration]:
        return [stage.to_stage() for stage in self.stages]


class LoggingSettings(BaseModel):
    """Structured logging configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON logs instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class ConcurrencySettings(BaseModel):
    """Parallel lineage computation across independent pipelines."""

    model_config = {"frozen": True}

    max_workers: int = Field(default=4, gt=0, description="Worker threads used when several pipelines are validated together")


class FieldTraceSettings(BaseModel):
    """Top-level configuration."""

    model_config = {"frozen": True}

    pipeline: PipelineSettings = Field(description="Pipeline whose field lineage is computed")
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)


def load_settings(config_path: Path) -> FieldTraceSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (FIELDTRACE_*) - highest priority
    2. Config file (pipeline.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: FIELDTRACE_LOGGING__level for nested keys
    (nested key names are case-sensitive).

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated FieldTraceSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="FIELDTRACE",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase top-level keys; filter its internal settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return FieldTraceSettings(**raw_config)
