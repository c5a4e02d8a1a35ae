"""Turn matched elements into output strings.

Four extraction modes are supported:

* ``ExtractMode.HTML``  - the element's outer markup
* ``ExtractMode.TEXT``  - all descendant text, entity-decoded
* ``ExtractMode.attribute(name)`` - one attribute value (``None`` if absent)
* ``ExtractMode.attributes(names)`` - a compact JSON object of several
  attributes; the pseudo-name ``@text`` stores the text under ``"text"``

Host functions pass the mode as a string (``"@text"``, ``"@href"``, ``"src"``)
or a list of strings; :meth:`ExtractMode.coerce` accepts all of these.
"""

from __future__ import annotations

import json
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from enum import Enum
from html import unescape
from typing import ClassVar

from htmlquery.document import Document, Text
from htmlquery.extractors.markup import outer_html

TEXT_MARKER = "@text"


class ExtractKind(str, Enum):
    HTML = "html"
    TEXT = "text"
    ATTRIBUTE = "attribute"
    ATTRIBUTES = "attributes"


@dataclass(frozen=True)
class ExtractMode:
    kind: ExtractKind = ExtractKind.HTML
    names: tuple[str, ...] = ()

    HTML: ClassVar[ExtractMode]
    TEXT: ClassVar[ExtractMode]

    @classmethod
    def attribute(cls, name: str) -> ExtractMode:
        return cls(ExtractKind.ATTRIBUTE, (name,))

    @classmethod
    def attributes(cls, names: Sequence[str]) -> ExtractMode:
        return cls(ExtractKind.ATTRIBUTES, tuple(names))

    @classmethod
    def from_attr(cls, value: str | None) -> ExtractMode:
        """``None``/``""`` → HTML, ``"text"``/``"@text"`` → TEXT, ``"@x"``/``"x"`` → attribute x."""
        if not value:
            return cls.HTML
        if value in ("text", TEXT_MARKER):
            return cls.TEXT
        return cls.attribute(value[1:] if value.startswith("@") else value)

    @classmethod
    def from_attr_list(cls, values: Sequence[str]) -> ExtractMode:
        if not values:
            return cls.HTML
        if len(values) == 1:
            return cls.from_attr(values[0])
        names = []
        for value in values:
            if value in ("text", TEXT_MARKER):
                names.append(TEXT_MARKER)
            else:
                names.append(value[1:] if value.startswith("@") else value)
        return cls.attributes(names)

    @classmethod
    def coerce(cls, value: ExtractMode | str | Sequence[str] | None) -> ExtractMode:
        if isinstance(value, ExtractMode):
            return value
        if value is None or isinstance(value, str):
            return cls.from_attr(value)
        return cls.from_attr_list(list(value))


ExtractMode.HTML = ExtractMode(ExtractKind.HTML)
ExtractMode.TEXT = ExtractMode(ExtractKind.TEXT)


def decode_entities(text: str) -> str:
    """Decode named, decimal and hexadecimal character references."""
    return unescape(text) if "&" in text else text


def text_content(
    doc: Document,
    index: int,
    *,
    ignore_whitespace: bool = False,
    skip: Collection[int] = (),
) -> str:
    """Concatenate descendant text of *index* in document order, entity-decoded.

    With *ignore_whitespace*, whitespace-only text nodes are skipped and each
    remaining text node is followed by a newline.  Subtrees in *skip* are left out.
    """
    pieces: list[str] = []
    for descendant in doc.iter_descendants(index, skip):
        node = doc[descendant]
        if not isinstance(node, Text):
            continue
        if ignore_whitespace:
            if not node.data.strip():
                continue
            pieces.append(node.data)
            pieces.append("\n")
        else:
            pieces.append(node.data)
    return decode_entities("".join(pieces))


def raw_text(doc: Document, index: int) -> str:
    """Descendant text exactly as written in the source (used for script bodies)."""
    return "".join(
        node.data for node in (doc[i] for i in doc.iter_descendants(index)) if isinstance(node, Text)
    )


def attribute_value(doc: Document, index: int, name: str) -> str | None:
    return doc.element(index).attrs.get(name.lower())


def extract(doc: Document, index: int, mode: ExtractMode) -> str | None:
    """Render element *index* according to *mode*; ``None`` is a missing value."""
    if mode.kind is ExtractKind.HTML:
        return outer_html(doc, index)
    if mode.kind is ExtractKind.TEXT:
        return text_content(doc, index)
    if mode.kind is ExtractKind.ATTRIBUTE:
        return attribute_value(doc, index, mode.names[0])

    obj: dict[str, str] = {}
    for name in mode.names:
        if name == TEXT_MARKER:
            obj["text"] = text_content(doc, index).strip()
        else:
            obj[name] = attribute_value(doc, index, name) or ""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
