"""Geometry resolution: locate each mapped element and read its rectangle.

Strategy chain per mapping, first hit wins:
1. ``id`` equal to ``source_element_id``
2. ``data-cell-id`` equal to ``source_element_id`` (embedded-dialect renders)
3. ``matched_attribute`` equal to ``data_id`` when the match was not on ``id``

Any lookup or measurement failure yields ``bbox=None`` and a warning.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from core.geometry.models import BoundingBox, ResolvedField
from core.geometry.rendered import RenderedDocument
from core.scanning.models import FieldMapping
from core.scanning.scanner import PRIMARY_ID_ATTRIBUTE

logger = logging.getLogger("svgbind.geometry")

CELL_ID_ATTRIBUTE = "data-cell-id"


def resolve_geometry(
    rendered: RenderedDocument, mappings: Sequence[FieldMapping]
) -> list[ResolvedField]:
    """Return one ResolvedField per mapping, in input order."""

    return [
        ResolvedField(mapping=mapping, bbox=_resolve_one(rendered, mapping))
        for mapping in mappings
    ]


def locate_element(rendered: RenderedDocument, mapping: FieldMapping) -> object | None:
    """Run the lookup chain for one mapping."""

    element = rendered.find(PRIMARY_ID_ATTRIBUTE, mapping.source_element_id)
    if element is not None:
        return element

    element = rendered.find(CELL_ID_ATTRIBUTE, mapping.source_element_id)
    if element is not None:
        return element

    if mapping.matched_attribute != PRIMARY_ID_ATTRIBUTE:
        return rendered.find(mapping.matched_attribute, mapping.data_id)
    return None


def _resolve_one(rendered: RenderedDocument, mapping: FieldMapping) -> BoundingBox | None:
    try:
        element = locate_element(rendered, mapping)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "lookup failed for field=%s id=%s: %s", mapping.name, mapping.source_element_id, exc
        )
        return None

    if element is None:
        logger.warning(
            "element not found for field=%s id=%s", mapping.name, mapping.source_element_id
        )
        return None

    measure = getattr(element, "bounding_box", None)
    if not callable(measure):
        logger.warning("element for field=%s cannot be measured", mapping.name)
        return None

    try:
        bbox = measure()
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "measurement failed for field=%s id=%s: %s",
            mapping.name,
            mapping.source_element_id,
            exc,
        )
        return None

    if not isinstance(bbox, BoundingBox):
        logger.warning("element for field=%s returned no rectangle", mapping.name)
        return None
    return bbox
