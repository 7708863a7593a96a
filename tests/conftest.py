# tests/conftest.py
"""Shared test fixtures and helpers.

Builders:
- make_stage(): StageDeclaration from plain strings
- customer_stages: the three-stage parse -> enrich -> publish pipeline used
  throughout the lineage tests

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from fieldtrace.contracts import FieldOperation, StageDeclaration

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


def make_stage(
    name: str,
    operations: Iterable[FieldOperation],
    *,
    inputs: Iterable[str] = (),
    outputs: Iterable[str] = (),
) -> StageDeclaration:
    """Shorthand for StageDeclaration.of() used across lineage tests."""
    return StageDeclaration.of(name, operations, input_schema=inputs, output_schema=outputs)


@pytest.fixture
def customer_stages() -> list[StageDeclaration]:
    """parse -> enrich -> publish, with 'id' passed through enrich untouched."""
    parse = make_stage(
        "parse",
        [
            FieldOperation.read("load", ["id", "raw"], "Read raw records"),
            FieldOperation.transform("split", ["raw"], ["first", "last"], "Split name"),
        ],
        outputs=["id", "first", "last"],
    )
    enrich = make_stage(
        "enrich",
        [
            FieldOperation.transform("concat", ["first", "last"], ["full_name"]),
            FieldOperation.transform("lookup", ["id"], ["segment"]),
        ],
        inputs=["id", "first", "last"],
        outputs=["id", "full_name", "segment"],
    )
    publish = make_stage(
        "publish",
        [FieldOperation.write("store", ["id", "full_name", "segment"], "Write to warehouse")],
        inputs=["id", "full_name", "segment"],
    )
    return [parse, enrich, publish]


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterable[None]:
    """Keep logging configuration from leaking between tests.

    configure_logging() replaces root handlers; CLI tests bind them to
    streams that CliRunner closes afterwards.
    """
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield
    root.handlers = saved_handlers
    root.setLevel(saved_level)
    structlog.reset_defaults()


@pytest.fixture
def write_settings(tmp_path: Path):
    """Write a settings dict as YAML and return its path."""
    import yaml

    def _write(data: dict, name: str = "pipeline.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write
