"""Serialise document subtrees back to HTML markup."""

from __future__ import annotations

from collections.abc import Collection
from html import escape

from bs4 import BeautifulSoup

from htmlquery.document import DOCUMENT_TAG, Comment, Document, Element, Text
from htmlquery.extractors.links import rewrite_attributes


def _build_start_tag(tag: str, attrs: dict[str, str]) -> str:
    rendered = "".join(f' {name}="{escape(value, quote=True)}"' for name, value in attrs.items())
    return f"<{tag}{rendered}>"


def start_tag(element: Element, base_url: str | None = None) -> str:
    """Start tag for *element*, verbatim from the source when possible."""
    if base_url:
        rewritten = rewrite_attributes(element, base_url)
        if rewritten is not None:
            return _build_start_tag(element.tag, rewritten)
    if element.source is not None:
        return element.source
    return _build_start_tag(element.tag, element.attrs)


def outer_html(
    doc: Document,
    index: int,
    *,
    skip: Collection[int] = (),
    base_url: str | None = None,
    compact: bool = False,
) -> str:
    """Serialise the subtree rooted at *index*.

    Args:
        skip:     Indices of subtrees to leave out (removed nodes).
        base_url: Resolve relative ``href``/``src``/... values against this URL.
        compact:  Drop whitespace-only text nodes.
    """
    parts: list[str] = []
    stack: list[tuple[int, bool]] = [(index, False)]
    while stack:
        current, closing = stack.pop()
        node = doc[current]
        if closing:
            assert isinstance(node, Element)
            parts.append(f"</{node.tag}>")
            continue
        if current in skip:
            continue
        if isinstance(node, Text):
            if not (compact and not node.data.strip()):
                parts.append(node.data)
        elif isinstance(node, Comment):
            parts.append(f"<!--{node.data}-->")
        elif node.tag == DOCUMENT_TAG:
            if doc.doctype:
                parts.append(doc.doctype)
            stack.extend((child, False) for child in reversed(node.children))
        else:
            parts.append(start_tag(node, base_url))
            if node.is_void:
                continue
            stack.append((current, True))
            stack.extend((child, False) for child in reversed(node.children))
    return "".join(parts)


def pretty_html(markup: str) -> str:
    """Re-indent *markup* one element per line."""
    return BeautifulSoup(markup, "html.parser").prettify().rstrip("\n")
