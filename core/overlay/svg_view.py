"""OverlayView over an lxml SVG tree using ``<foreignObject>`` containers."""

from __future__ import annotations

import copy
from typing import Any

from lxml import etree

from core.geometry.models import BoundingBox
from core.geometry.svg_geometry import OVERLAY_MARKER_ATTRIBUTE
from core.overlay.view import DefaultInputControl, DefaultOutputControl, OverlayContainer
from core.scanning.markup import XHTML_NAMESPACE
from core.utils.errors import MarkupParseError

FIELD_ID_ATTRIBUTE = "data-field-id"
FIELD_NAME_ATTRIBUTE = "data-field-name"


class SvgOverlayView:
    def __init__(self, root: etree._Element) -> None:
        self.root = root
        self._svg_namespace = etree.QName(root).namespace

    def mount(self, container: OverlayContainer, control: Any) -> etree._Element:
        tag = "foreignObject"
        if self._svg_namespace:
            tag = f"{{{self._svg_namespace}}}foreignObject"

        node = etree.Element(tag)
        node.set(OVERLAY_MARKER_ATTRIBUTE, "true")
        node.set(FIELD_ID_ATTRIBUTE, container.field_id)
        node.set("class", f"svg-field svg-field-{container.type}")
        _place(node, container.bbox)
        # build the control before attaching so a failing control leaves no node behind
        node.append(_control_element(control))
        self.root.append(node)
        return node

    def update(
        self,
        handle: etree._Element,
        *,
        bbox: BoundingBox | None = None,
        control: Any = None,
    ) -> None:
        if control is not None:
            replacement = _control_element(control)
            for child in list(handle):
                handle.remove(child)
            handle.append(replacement)
        if bbox is not None:
            _place(handle, bbox)

    def unmount(self, handle: etree._Element) -> None:
        parent = handle.getparent()
        if parent is not None:
            parent.remove(handle)

    def to_string(self) -> str:
        return etree.tostring(self.root, encoding="unicode")


def _place(node: etree._Element, bbox: BoundingBox) -> None:
    node.set("x", _format_number(bbox.x))
    node.set("y", _format_number(bbox.y))
    node.set("width", _format_number(bbox.width))
    node.set("height", _format_number(bbox.height))


def _format_number(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in {"", "-0"} else text


def _xhtml(tag: str) -> str:
    return f"{{{XHTML_NAMESPACE}}}{tag}"


def _control_element(control: Any) -> etree._Element:
    if isinstance(control, DefaultInputControl):
        element = etree.Element(_xhtml("input"), nsmap={None: XHTML_NAMESPACE})
        element.set("type", "text")
        element.set(FIELD_NAME_ATTRIBUTE, control.name)
        element.set("value", control.value)
        if control.placeholder:
            element.set("placeholder", control.placeholder)
        return element

    if isinstance(control, DefaultOutputControl):
        element = etree.Element(_xhtml("div"), nsmap={None: XHTML_NAMESPACE})
        element.set(FIELD_NAME_ATTRIBUTE, control.name)
        element.text = control.text
        return element

    if isinstance(control, etree._Element):
        return copy.deepcopy(control)

    if isinstance(control, str):
        if control.lstrip().startswith("<"):
            try:
                return etree.fromstring(control)
            except etree.XMLSyntaxError as exc:
                raise MarkupParseError(f"Invalid control markup: {exc}") from exc
        element = etree.Element(_xhtml("div"), nsmap={None: XHTML_NAMESPACE})
        element.text = control
        return element

    raise TypeError(f"Unsupported control type: {type(control).__name__}")
