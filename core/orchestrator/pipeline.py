"""Orchestration pipeline: raw text -> scan -> resolve -> diagnostics."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any

from core.geometry.models import ResolvedField
from core.geometry.rendered import SvgRenderedDocument
from core.geometry.resolver import resolve_geometry
from core.matching.matcher import build_valid_rules
from core.orchestrator.diagnostics import DiagnosticInfo, build_diagnostics
from core.scanning.markup import MarkupParser
from core.scanning.models import Dialect, ScanResult
from core.scanning.tools import get_tool_scanner
from core.utils.errors import MarkupParseError

logger = logging.getLogger("svgbind.pipeline")


@dataclass(frozen=True)
class PipelineResult:
    scan: ScanResult
    fields: list[ResolvedField]
    diagnostics: DiagnosticInfo
    rendered: SvgRenderedDocument | None = None


def run_scan(
    document_text: object,
    raw_rules: object,
    dialect: Dialect | None = None,
    *,
    tool: str = "generic",
    parser: MarkupParser | None = None,
) -> ScanResult:
    """Scan with the valid subset of ``raw_rules``.

    Rule problems are non-fatal: they are prepended to the scan errors.
    Raises ``ValueError`` for an unknown tool name.
    """

    scanner = get_tool_scanner(tool)
    rules, problems = build_valid_rules(raw_rules)
    if problems:
        logger.warning("rule configuration problems: %s", "; ".join(problems))

    result = scanner(document_text, rules, dialect, parser=parser)
    if problems:
        result = result.model_copy(update={"errors": [*problems, *result.errors]})

    logger.info(
        "scan dialect=%s tool=%s mappings=%d errors=%d",
        result.metadata.dialect,
        result.metadata.tool,
        len(result.mappings),
        len(result.errors),
    )
    return result


def run_resolve(
    document_text: object,
    scan: ScanResult,
    *,
    rendered: SvgRenderedDocument | None = None,
    parser: MarkupParser | None = None,
) -> PipelineResult:
    """Resolve geometry for ``scan`` against the rendered form of ``document_text``."""

    if rendered is None and isinstance(document_text, str) and document_text.strip():
        try:
            rendered = SvgRenderedDocument.from_text(document_text, parser)
        except MarkupParseError as exc:
            logger.debug("document not renderable: %s", exc)

    if rendered is None:
        fields = [ResolvedField(mapping=mapping, bbox=None) for mapping in scan.mappings]
        return PipelineResult(scan=scan, fields=fields, diagnostics=build_diagnostics(scan, fields))

    fields = resolve_geometry(rendered, scan.mappings)
    diagnostics = build_diagnostics(scan, fields, dimensions=rendered.dimensions())
    return PipelineResult(scan=scan, fields=fields, diagnostics=diagnostics, rendered=rendered)


def run_pipeline(
    document_text: object,
    raw_rules: object,
    dialect: Dialect | None = None,
    *,
    tool: str = "generic",
    parser: MarkupParser | None = None,
) -> PipelineResult:
    scan = run_scan(document_text, raw_rules, dialect, tool=tool, parser=parser)
    return run_resolve(document_text, scan, parser=parser)


def fields_payload(fields: Sequence[ResolvedField]) -> list[dict[str, Any]]:
    """JSON-ready resolved fields."""

    payload: list[dict[str, Any]] = []
    for item in fields:
        entry = asdict(item.mapping)
        entry["bbox"] = asdict(item.bbox) if item.bbox is not None else None
        payload.append(entry)
    return payload
