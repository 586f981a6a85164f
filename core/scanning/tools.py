"""Tool-specific scan wrappers for SVG exports of known diagramming tools."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from core.matching.models import MatchRule
from core.scanning.markup import MarkupParser
from core.scanning.models import Dialect, ScanResult, ToolName
from core.scanning.scanner import scan_document

ToolScanner = Callable[..., ScanResult]


def scan_generic(
    document_text: object,
    rules: Sequence[MatchRule],
    dialect: Dialect | None = None,
    *,
    parser: MarkupParser | None = None,
) -> ScanResult:
    """Scan any SVG, auto-detecting the dialect."""

    return scan_document(document_text, rules, dialect, parser=parser, tool="generic")


def scan_drawio(
    document_text: object,
    rules: Sequence[MatchRule],
    dialect: Dialect | None = None,
    *,
    parser: MarkupParser | None = None,
) -> ScanResult:
    """Scan a draw.io SVG export; fields live in the embedded diagram document."""

    return scan_document(
        document_text, rules, dialect or "embedded", parser=parser, tool="drawio"
    )


def scan_figma(
    document_text: object,
    rules: Sequence[MatchRule],
    dialect: Dialect | None = None,
    *,
    parser: MarkupParser | None = None,
) -> ScanResult:
    """Scan a Figma SVG export; layer names become element ids."""

    return scan_document(document_text, rules, dialect or "direct", parser=parser, tool="figma")


def scan_inkscape(
    document_text: object,
    rules: Sequence[MatchRule],
    dialect: Dialect | None = None,
    *,
    parser: MarkupParser | None = None,
) -> ScanResult:
    """Scan an Inkscape SVG; rules may target ``inkscape:label`` as well as ``id``."""

    return scan_document(
        document_text, rules, dialect or "direct", parser=parser, tool="inkscape"
    )


_SUPPORTED_TOOLS: dict[ToolName, ToolScanner] = {
    "drawio": scan_drawio,
    "figma": scan_figma,
    "generic": scan_generic,
    "inkscape": scan_inkscape,
}


def get_tool_scanner(name: str) -> ToolScanner:
    """Return the scan wrapper registered for a tool name."""

    try:
        return _SUPPORTED_TOOLS[name]  # type: ignore[index]
    except KeyError as exc:
        raise ValueError(f"Unsupported tool: {name}") from exc


def scan_with_tool(
    name: str,
    document_text: object,
    rules: Sequence[MatchRule],
    dialect: Dialect | None = None,
    *,
    parser: MarkupParser | None = None,
) -> ScanResult:
    """Scan with the wrapper registered for ``name``."""

    return get_tool_scanner(name)(document_text, rules, dialect, parser=parser)


def list_supported_tools() -> list[str]:
    """Return supported tool names in stable order."""

    return sorted(_SUPPORTED_TOOLS)
