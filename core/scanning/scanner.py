"""Dialect scanner turning diagram markup into field mappings.

Two dialects are supported:
- direct: rule attributes are read from elements of the SVG itself.
- embedded: the SVG root carries an entity-encoded diagram document (draw.io
  ``content`` attribute); rule attributes are read from that document and the
  matched element's own ``id`` is kept for lookup in the rendered SVG.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from lxml import etree

from core.matching.matcher import match_candidate
from core.matching.models import MatchRule
from core.scanning.entities import decode_html_entities, needs_entity_decoding
from core.scanning.markup import (
    LxmlMarkupParser,
    MarkupParser,
    find_svg_root,
    get_attribute,
    iter_elements,
)
from core.scanning.models import (
    NO_FIELDS_MATCHED,
    Dialect,
    FieldMapping,
    ScanMetadata,
    ScanResult,
    ToolName,
)
from core.utils.errors import MarkupParseError

logger = logging.getLogger("svgbind.scan")

PRIMARY_ID_ATTRIBUTE = "id"
EXTERNAL_ID_ATTRIBUTE = "data-id"
EMBEDDED_DOCUMENT_ATTRIBUTE = "content"

_DEFAULT_ATTRIBUTE: dict[Dialect, str] = {
    "direct": PRIMARY_ID_ATTRIBUTE,
    "embedded": EXTERNAL_ID_ATTRIBUTE,
}


def scan_document(
    document_text: object,
    rules: Sequence[MatchRule],
    dialect: Dialect | None = None,
    *,
    parser: MarkupParser | None = None,
    tool: ToolName = "generic",
) -> ScanResult:
    """Scan diagram markup for fields.

    When ``dialect`` is None the embedded dialect is chosen if the SVG root
    carries a non-empty ``content`` attribute, otherwise the direct dialect.
    A forced dialect skips detection entirely.
    """

    markup_parser = parser or LxmlMarkupParser()
    reported_dialect: Dialect = dialect or "direct"

    if not isinstance(document_text, str) or not document_text.strip():
        return _failure(
            "Invalid document content: expected a non-empty string", reported_dialect, tool
        )

    if "<svg" not in document_text:
        return _failure(
            "Invalid SVG: expected SVG markup but received a string without an <svg> element. "
            "Make sure you are passing the file content, not a file path.",
            reported_dialect,
            tool,
        )

    try:
        root = markup_parser.parse(document_text)
    except MarkupParseError as exc:
        return _failure(f"Failed to parse SVG document: {exc}", reported_dialect, tool)

    svg_element = find_svg_root(root)
    if svg_element is None:
        return _failure("No SVG element found in provided content", reported_dialect, tool)

    if dialect is None:
        payload = svg_element.get(EMBEDDED_DOCUMENT_ATTRIBUTE)
        dialect = "embedded" if payload and payload.strip() else "direct"
        logger.debug("detected dialect=%s tool=%s", dialect, tool)

    if dialect == "embedded":
        return _scan_embedded(svg_element, rules, markup_parser, tool)
    return _scan_direct(svg_element, rules, tool)


def group_rules_by_attribute(
    rules: Sequence[MatchRule], default_attribute: str
) -> dict[str, list[MatchRule]]:
    """Group rules by target attribute, keeping first-appearance order."""

    grouped: dict[str, list[MatchRule]] = {}
    for rule in rules:
        grouped.setdefault(rule.attribute or default_attribute, []).append(rule)
    return grouped


def _scan_direct(
    svg_element: etree._Element, rules: Sequence[MatchRule], tool: ToolName
) -> ScanResult:
    grouped = group_rules_by_attribute(rules, _DEFAULT_ATTRIBUTE["direct"])
    mappings: list[FieldMapping] = []

    for attribute, attribute_rules in grouped.items():
        seen = 0
        for element in iter_elements(svg_element, include_root=False):
            value = get_attribute(element, attribute)
            if value is None:
                continue
            seen += 1
            match = match_candidate(value, attribute_rules)
            if match is None:
                continue
            mappings.append(
                FieldMapping(
                    data_id=value,
                    name=match.name,
                    source_element_id=element.get(PRIMARY_ID_ATTRIBUTE) or value,
                    type=match.type,
                    matched_attribute=attribute,
                )
            )
        if seen == 0:
            logger.debug("no elements carry attribute=%s", attribute)

    return _result(mappings, "direct", tool, list(grouped))


def _scan_embedded(
    svg_element: etree._Element,
    rules: Sequence[MatchRule],
    parser: MarkupParser,
    tool: ToolName,
) -> ScanResult:
    grouped = group_rules_by_attribute(rules, _DEFAULT_ATTRIBUTE["embedded"])
    attributes_used = list(grouped)

    payload = svg_element.get(EMBEDDED_DOCUMENT_ATTRIBUTE)
    if not payload or not payload.strip():
        return _failure(
            "Embedded diagram document missing: the SVG has no "
            f"'{EMBEDDED_DOCUMENT_ATTRIBUTE}' attribute. This may not be a draw.io export; "
            "scan it with the direct dialect instead.",
            "embedded",
            tool,
            attributes_used,
        )

    decoded = decode_html_entities(payload) if needs_entity_decoding(payload) else payload
    try:
        diagram_root = parser.parse(decoded)
    except MarkupParseError as exc:
        return _failure(
            f"Failed to parse embedded diagram XML: {exc}", "embedded", tool, attributes_used
        )

    mappings: list[FieldMapping] = []
    for attribute, attribute_rules in grouped.items():
        for element in iter_elements(diagram_root):
            value = get_attribute(element, attribute)
            if value is None:
                continue
            cell_id = element.get(PRIMARY_ID_ATTRIBUTE)
            if not cell_id:
                logger.debug("skipping %s=%r without id", attribute, value)
                continue
            match = match_candidate(value, attribute_rules)
            if match is None:
                continue
            mappings.append(
                FieldMapping(
                    data_id=value,
                    name=match.name,
                    source_element_id=cell_id,
                    type=match.type,
                    matched_attribute=attribute,
                )
            )

    return _result(mappings, "embedded", tool, attributes_used)


def _result(
    mappings: list[FieldMapping], dialect: Dialect, tool: ToolName, attributes_used: list[str]
) -> ScanResult:
    errors = [] if mappings else [NO_FIELDS_MATCHED]
    return ScanResult(
        mappings=mappings,
        errors=errors,
        metadata=ScanMetadata(dialect=dialect, tool=tool, attributes_used=attributes_used),
    )


def _failure(
    message: str,
    dialect: Dialect,
    tool: ToolName,
    attributes_used: list[str] | None = None,
) -> ScanResult:
    return ScanResult(
        mappings=[],
        errors=[message],
        metadata=ScanMetadata(
            dialect=dialect, tool=tool, attributes_used=list(attributes_used or [])
        ),
    )
