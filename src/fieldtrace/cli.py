# src/fieldtrace/cli.py
"""FieldTrace Command Line Interface.

Entry point for the fieldtrace CLI tool.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Literal, NoReturn

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from fieldtrace import __version__
from fieldtrace.cli_formatters import (
    format_graph_json,
    format_graph_text,
    format_steps_json,
    format_steps_text,
    invalid_lineage_details,
)
from fieldtrace.contracts import InvalidLineageError, InvalidOperationError, LineageCompositionError
from fieldtrace.core.config import FieldTraceSettings, load_settings
from fieldtrace.engine import LineageEngine, LineageResult

__all__ = [
    "app",
    "load_settings",
]

app = typer.Typer(
    name="fieldtrace",
    help="FieldTrace: field-level lineage for multi-stage pipelines.",
    no_args_is_help=True,
)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"fieldtrace version {__version__}")
        raise typer.Exit()


def _fail(title: str, message: str, *, hint: str | None = None, details: Sequence[str] = ()) -> NoReturn:
    """Render an error panel on stderr and exit with status 1."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    body = Text(message, style="white")
    if details:
        body.append("\n\n")
        for detail in details:
            body.append(f"  • {detail}\n", style="dim")
    if hint:
        body.append("\nHint: ", style="yellow bold")
        body.append(hint, style="yellow")

    Console(stderr=True).print(Panel(body, title=f"[red bold]❌ {title}[/]", border_style="red", padding=(0, 1)))
    raise typer.Exit(1)


def _load_dotenv(env_file: Path | None) -> bool:
    """Load a .env file without overriding variables already set.

    With no explicit file, python-dotenv searches upward from the current
    directory. A missing explicit file is a usage error.
    """
    from dotenv import load_dotenv

    if env_file is None:
        return load_dotenv(override=False)
    if not env_file.exists():
        typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    return load_dotenv(env_file, override=False)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=_print_version,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Do not read a .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Read this .env file instead of searching for one.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log at DEBUG level.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as JSON lines on stderr.",
    ),
) -> None:
    """FieldTrace: field-level lineage for multi-stage pipelines."""
    from fieldtrace.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")
    # Explicit flags take precedence over the settings file's logging section
    ctx.obj = {"log_flags": verbose or json_logs}

    if no_dotenv:
        if env_file is not None:
            typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)
        return
    _load_dotenv(env_file)


def _load_config(settings: str) -> FieldTraceSettings:
    settings_path = Path(settings).expanduser()

    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _fail(
            "YAML Syntax Error",
            f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if getattr(e, "problem", None) else (),
            hint="Check indentation and that every list item under 'operations' starts with '-'.",
        )
    except FileNotFoundError:
        _fail("File Not Found", f"Settings file does not exist: {settings}", hint="Pass the pipeline YAML with --settings.")
    except ValidationError as e:
        _fail(
            "Configuration Validation Failed",
            f"Invalid settings in {settings_path.name}",
            details=[f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()],
            hint="Check operation kinds, field lists, and stage names.",
        )


def _compute(ctx: typer.Context, configs: Sequence[FieldTraceSettings]) -> list[LineageResult]:
    """Validate and compose the configured pipelines, rendering failures.

    The first settings file supplies logging and concurrency settings;
    pipelines are computed in parallel on up to ``concurrency.max_workers``
    threads and returned in argument order.
    """
    from fieldtrace.core.logging import configure_logging

    primary = configs[0]
    if not (ctx.obj or {}).get("log_flags", False):
        configure_logging(json_output=primary.logging.json_output, level=primary.logging.level)

    names = [config.pipeline.name for config in configs]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        _fail("Duplicate Pipeline Names", f"Pipeline names must be unique across settings files: {duplicates}")

    try:
        results = LineageEngine().compute_many(
            {config.pipeline.name: config.pipeline.to_stages() for config in configs},
            max_workers=primary.concurrency.max_workers,
        )
    except InvalidOperationError as e:
        _fail("Invalid Operation", str(e), hint="Every operation needs a unique name and well-formed field lists.")
    except InvalidLineageError as e:
        _fail(
            "Invalid Field Lineage",
            str(e).strip(),
            details=invalid_lineage_details(e),
            hint="Declare missing fields in the stage schemas or record the operations that produce/consume them.",
        )
    except LineageCompositionError as e:
        _fail("Lineage Composition Error", str(e), hint="Fields crossing a stage boundary must be produced by an upstream operation.")
    return list(results.values())


@app.command()
def validate(
    ctx: typer.Context,
    settings: list[str] = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to pipeline YAML file. Repeat to validate several pipelines in parallel.",
    ),
) -> None:
    """Validate declared field operations and compose the lineage graph."""
    results = _compute(ctx, [_load_config(path) for path in settings])

    typer.echo("✅ Field lineage valid!")
    for result in results:
        inter_stage = sum(1 for edge in result.graph.edges() if edge.scope == "inter_stage")
        typer.echo(f"  Pipeline: {result.pipeline}")
        typer.echo(f"  Stages: {', '.join(result.graph.stages)}")
        typer.echo(f"  Graph: {result.graph.node_count} operations, {result.graph.edge_count} edges ({inter_stage} cross-stage)")
        typer.echo(f"  Fingerprint: {result.fingerprint}")


@app.command()
def graph(
    ctx: typer.Context,
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to pipeline YAML file.",
    ),
    output_format: Literal["text", "json"] = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' (human-readable) or 'json' (edge list with descriptors).",
    ),
) -> None:
    """Print the composed pipeline lineage graph."""
    config = _load_config(settings)
    (result,) = _compute(ctx, [config])

    if output_format == "json":
        typer.echo(format_graph_json(result))
    else:
        for line in format_graph_text(result):
            typer.echo(line)


@app.command()
def explain(
    ctx: typer.Context,
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to pipeline YAML file.",
    ),
    stage: str = typer.Option(
        ...,
        "--stage",
        help="Stage at which the field is observed.",
    ),
    field_name: str = typer.Option(
        ...,
        "--field",
        help="Field to explain.",
    ),
    impact: bool = typer.Option(
        False,
        "--impact",
        help="Show downstream operations affected by the field instead of its causes.",
    ),
    output_format: Literal["text", "json"] = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' or 'json'.",
    ),
) -> None:
    """Explain where a field's value came from (or what it affects)."""
    config = _load_config(settings)
    (result,) = _compute(ctx, [config])
    queries = result.queries

    walk = queries.impact_of(stage, field_name) if impact else queries.causal_chain(stage, field_name)
    steps = list(walk)

    if output_format == "json":
        typer.echo(format_steps_json(stage, field_name, "impact" if impact else "causes", steps))
        return

    if not steps:
        typer.echo(f"No lineage recorded for field '{field_name}' at stage '{stage}'.")
        return
    for line in format_steps_text(steps):
        typer.echo(line)


if __name__ == "__main__":
    app()
