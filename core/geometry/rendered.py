"""Rendered-document capability consumed by the geometry resolver."""

from __future__ import annotations

from typing import Protocol

from lxml import etree

from core.geometry.models import BoundingBox
from core.geometry.svg_geometry import (
    OVERLAY_MARKER_ATTRIBUTE,
    document_dimensions,
    measure_element,
)
from core.scanning.markup import (
    LxmlMarkupParser,
    MarkupParser,
    find_svg_root,
    get_attribute,
    iter_elements,
)
from core.utils.errors import MarkupParseError


class RenderedElement(Protocol):
    def bounding_box(self) -> BoundingBox:
        """Measure the element or raise."""


class RenderedDocument(Protocol):
    def find(self, attribute: str, value: str) -> object | None:
        """Return the first element whose ``attribute`` equals ``value``."""


class RenderedSvgElement:
    """Measurable handle on one element of a rendered SVG."""

    def __init__(self, element: etree._Element, root: etree._Element) -> None:
        self.element = element
        self._root = root

    def bounding_box(self) -> BoundingBox:
        return measure_element(self.element, self._root)


class SvgRenderedDocument:
    """An lxml-backed rendered SVG.

    Lookups compare attribute values literally through per-attribute
    indexes, built lazily and skipping overlay subtrees.
    """

    def __init__(self, root: etree._Element) -> None:
        svg_root = find_svg_root(root)
        if svg_root is None:
            raise MarkupParseError("No SVG element found in provided content")
        self.root = svg_root
        self._indexes: dict[str, dict[str, etree._Element]] = {}

    @classmethod
    def from_text(cls, text: str, parser: MarkupParser | None = None) -> SvgRenderedDocument:
        return cls((parser or LxmlMarkupParser()).parse(text))

    def find(self, attribute: str, value: str) -> RenderedSvgElement | None:
        element = self._index(attribute).get(value)
        if element is None:
            return None
        return RenderedSvgElement(element, self.root)

    def dimensions(self) -> tuple[float, float] | None:
        return document_dimensions(self.root)

    def invalidate(self) -> None:
        """Drop lookup indexes after the tree was edited outside overlays."""

        self._indexes.clear()

    def _index(self, attribute: str) -> dict[str, etree._Element]:
        index = self._indexes.get(attribute)
        if index is not None:
            return index

        index = {}
        skipped: set[etree._Element] = set()
        for element in iter_elements(self.root):
            parent = element.getparent()
            if element.get(OVERLAY_MARKER_ATTRIBUTE) is not None or parent in skipped:
                skipped.add(element)
                continue
            value = get_attribute(element, attribute)
            if value is not None and value not in index:
                index[value] = element
        self._indexes[attribute] = index
        return index
