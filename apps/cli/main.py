"""Typer CLI entrypoint for svgbind."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, cast

import typer

from apps.cli.io import dump_json, write_json_atomic, write_text_atomic
from core.matching.matcher import validate_rules
from core.matching.rule_loader import load_raw_rules
from core.orchestrator.fetch import fetch_document
from core.orchestrator.pipeline import fields_payload, run_resolve, run_scan
from core.orchestrator.session import FieldBindingSession
from core.scanning.models import Dialect, ScanResult
from core.scanning.tools import list_supported_tools
from core.utils.errors import DocumentFetchError

app = typer.Typer(help="SVG field binding CLI", rich_markup_mode=None)

EXIT_OK = 0
EXIT_INTERNAL = 1
EXIT_INVALID_RULES = 2
EXIT_STRUCTURAL = 3
EXIT_NO_FIELDS = 4

DocumentOption = Annotated[
    Path | None,
    typer.Option("--document", exists=True, dir_okay=False, file_okay=True, help="SVG file."),
]
UrlOption = Annotated[str | None, typer.Option("--url", help="Fetch the SVG from a URL.")]
RulesOption = Annotated[
    Path | None,
    typer.Option("--rules", help="Rules YAML; the bundled input-/output- prefixes by default."),
]
DialectOption = Annotated[str | None, typer.Option("--dialect", help="direct or embedded.")]
ToolOption = Annotated[str, typer.Option("--tool")]
OutOption = Annotated[Path | None, typer.Option("--out")]


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("validate-rules")
def validate_rules_command(
    rules: Annotated[Path, typer.Option("--rules", exists=True, dir_okay=False)],
) -> None:
    """Check a rules file and print every rule-indexed problem."""

    raw_rules = _load_raw_rules_or_exit(rules)
    problems = validate_rules(raw_rules)
    if problems:
        for problem in problems:
            typer.echo(f"ERROR(rules): {problem}")
        raise typer.Exit(code=EXIT_INVALID_RULES)

    typer.echo(f"INFO: {len(raw_rules)} rule(s) valid")
    raise typer.Exit(code=EXIT_OK)


@app.command("scan")
def scan_command(
    document: DocumentOption = None,
    url: UrlOption = None,
    rules: RulesOption = None,
    dialect: DialectOption = None,
    tool: ToolOption = "generic",
    out: OutOption = None,
) -> None:
    """Scan a document and write the field mappings as JSON."""

    dialect_typed, tool_typed = _validate_scan_args(dialect, tool)
    raw_rules = _load_strict_rules(rules)
    text = _load_document_or_exit(document, url)

    scan = run_scan(text, raw_rules, dialect_typed, tool=tool_typed)
    _emit({"scan": scan.model_dump(mode="json")}, out)
    raise typer.Exit(code=_scan_exit_code(scan))


@app.command("resolve")
def resolve_command(
    document: DocumentOption = None,
    url: UrlOption = None,
    rules: RulesOption = None,
    dialect: DialectOption = None,
    tool: ToolOption = "generic",
    out: OutOption = None,
) -> None:
    """Scan, resolve geometry and write fields plus diagnostics as JSON."""

    dialect_typed, tool_typed = _validate_scan_args(dialect, tool)
    raw_rules = _load_strict_rules(rules)
    text = _load_document_or_exit(document, url)

    scan = run_scan(text, raw_rules, dialect_typed, tool=tool_typed)
    result = run_resolve(text, scan)
    unresolved = result.diagnostics.unresolved_fields
    if unresolved:
        typer.echo(f"WARNING(geometry): unresolved fields: {', '.join(unresolved)}", err=True)

    _emit(
        {
            "scan": scan.model_dump(mode="json"),
            "fields": fields_payload(result.fields),
            "diagnostics": result.diagnostics.model_dump(mode="json"),
        },
        out,
    )
    raise typer.Exit(code=_scan_exit_code(scan))


@app.command("bind")
def bind_command(
    out: Annotated[Path, typer.Option("--out", help="Where to write the bound SVG.")],
    document: DocumentOption = None,
    url: UrlOption = None,
    rules: RulesOption = None,
    dialect: DialectOption = None,
    tool: ToolOption = "generic",
    values: Annotated[
        Path | None,
        typer.Option("--values", exists=True, dir_okay=False, help="JSON object of input values."),
    ] = None,
) -> None:
    """Mount overlay controls into the SVG and write the result."""

    dialect_typed, tool_typed = _validate_scan_args(dialect, tool)
    raw_rules = _load_strict_rules(rules)
    input_values = _load_values_or_exit(values) if values is not None else {}
    text = _load_document_or_exit(document, url)

    session = FieldBindingSession(raw_rules, dialect=dialect_typed, tool=tool_typed)
    result = session.load_text(text)
    exit_code = _scan_exit_code(result.scan)
    if exit_code != EXIT_OK:
        raise typer.Exit(code=exit_code)

    session.set_input_values(input_values)
    bound = session.to_string()
    if bound is None:
        typer.echo("ERROR: document could not be rendered")
        raise typer.Exit(code=EXIT_STRUCTURAL)

    try:
        write_text_atomic(out, bound)
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=EXIT_INTERNAL) from exc

    report = session.last_report
    mounted = len(report.created) if report is not None else 0
    typer.echo(f"INFO: mounted {mounted} overlay(s) into {out}")
    raise typer.Exit(code=EXIT_OK)


def _validate_scan_args(dialect: str | None, tool: str) -> tuple[Dialect | None, str]:
    dialect_typed: Dialect | None = None
    if dialect is not None:
        normalized = dialect.lower().strip()
        if normalized not in {"direct", "embedded"}:
            typer.echo("ERROR: --dialect must be one of: direct, embedded.")
            raise typer.Exit(code=EXIT_INTERNAL)
        dialect_typed = cast(Dialect, normalized)

    normalized_tool = tool.lower().strip()
    supported = list_supported_tools()
    if normalized_tool not in supported:
        typer.echo(f"ERROR: --tool must be one of: {', '.join(supported)}.")
        raise typer.Exit(code=EXIT_INTERNAL)
    return dialect_typed, normalized_tool


def _load_raw_rules_or_exit(path: Path | None) -> list[object]:
    try:
        return load_raw_rules(path)
    except ValueError as exc:
        typer.echo(f"ERROR(rules): {exc}")
        raise typer.Exit(code=EXIT_INVALID_RULES) from exc


def _load_strict_rules(path: Path | None) -> list[object]:
    raw_rules = _load_raw_rules_or_exit(path)
    problems = validate_rules(raw_rules)
    if problems:
        for problem in problems:
            typer.echo(f"ERROR(rules): {problem}")
        raise typer.Exit(code=EXIT_INVALID_RULES)
    return raw_rules


def _load_document_or_exit(document: Path | None, url: str | None) -> str:
    if (document is None) == (url is None):
        typer.echo("ERROR: exactly one of --document or --url is required.")
        raise typer.Exit(code=EXIT_INTERNAL)

    if document is not None:
        try:
            return document.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            typer.echo(f"ERROR: cannot read document: {exc}")
            raise typer.Exit(code=EXIT_INTERNAL) from exc

    try:
        return asyncio.run(fetch_document(cast(str, url)))
    except DocumentFetchError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INTERNAL) from exc


def _load_values_or_exit(path: Path) -> dict[str, str]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        typer.echo(f"ERROR: cannot read values: {exc}")
        raise typer.Exit(code=EXIT_INTERNAL) from exc
    if not isinstance(raw, dict):
        typer.echo("ERROR: values JSON must be an object")
        raise typer.Exit(code=EXIT_INTERNAL)
    return {str(name): "" if value is None else str(value) for name, value in raw.items()}


def _scan_exit_code(scan: ScanResult) -> int:
    if scan.mappings:
        return EXIT_OK
    for error in scan.errors:
        typer.echo(f"ERROR: {error}")
    return EXIT_NO_FIELDS if scan.no_match else EXIT_STRUCTURAL


def _emit(payload: dict[str, Any], out: Path | None) -> None:
    if out is None:
        typer.echo(dump_json(payload))
        return
    try:
        write_json_atomic(out, payload)
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=EXIT_INTERNAL) from exc
    typer.echo(f"INFO: wrote {out}")


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
