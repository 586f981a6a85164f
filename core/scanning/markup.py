"""Markup parsing capability injected into the scanner and geometry resolver.

All lxml-level parsing and attribute lookups for diagram documents live here.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from lxml import etree

from core.utils.errors import MarkupParseError

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
_XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"


class MarkupParser(Protocol):
    """Turns markup text into an element tree root."""

    def parse(self, text: str) -> etree._Element:
        """Parse ``text`` or raise ``MarkupParseError``."""


class LxmlMarkupParser:
    """Default parser: lxml with entity resolution and network access disabled."""

    def __init__(self, *, recover: bool = False) -> None:
        self._recover = recover

    def parse(self, text: str) -> etree._Element:
        # text is already decoded; any encoding declared in the prolog no longer applies
        parser = etree.XMLParser(
            encoding="utf-8",
            resolve_entities=False,
            no_network=True,
            remove_comments=True,
            remove_pis=True,
            recover=self._recover,
        )
        try:
            root = etree.fromstring(text.encode("utf-8"), parser=parser)
        except etree.XMLSyntaxError as exc:
            raise MarkupParseError(str(exc)) from exc
        if root is None:
            raise MarkupParseError("Document has no root element")
        return root


def local_name(element: etree._Element) -> str:
    """Return the tag without namespace."""

    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def iter_elements(root: etree._Element, *, include_root: bool = True) -> Iterator[etree._Element]:
    """Yield elements (never comments/PIs) in document order."""

    for element in root.iter(etree.Element):
        if not include_root and element is root:
            continue
        yield element


def find_svg_root(root: etree._Element) -> etree._Element | None:
    """Return the outermost ``<svg>`` element of a parsed document."""

    for element in iter_elements(root):
        if local_name(element) == "svg":
            return element
    return None


def attribute_key(element: etree._Element, name: str) -> str:
    """Translate ``prefix:local`` attribute names into lxml Clark notation.

    Unknown prefixes are returned unchanged so lookups simply miss.
    """

    if ":" not in name or name.startswith("{"):
        return name
    prefix, local = name.split(":", 1)
    if prefix == "xml":
        return f"{{{_XML_NAMESPACE}}}{local}"
    namespace = element.nsmap.get(prefix)
    if namespace is None:
        return name
    return f"{{{namespace}}}{local}"


def get_attribute(element: etree._Element, name: str) -> str | None:
    """Read an attribute by plain or prefixed name."""

    return element.get(attribute_key(element, name))
