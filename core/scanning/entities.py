"""HTML entity decoding for embedded diagram documents."""

from __future__ import annotations

import html


def decode_html_entities(text: str) -> str:
    """Decode numeric and named HTML entities (``&lt;``, ``&#10;``, ``&amp;`` ...)."""

    if "&" not in text:
        return text
    return html.unescape(text)


def needs_entity_decoding(text: str) -> bool:
    """Return True when ``text`` still carries escaped markup.

    An XML parser already decodes one level of escaping in attribute values,
    so a value that starts with ``<`` is markup and must not be decoded again.
    """

    stripped = text.lstrip()
    return not stripped.startswith("<") and "&" in stripped
