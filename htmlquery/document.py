"""htmlquery.document - tolerant HTML parsing into an index-addressed tree.

A :class:`Document` is a flat arena of nodes.  Children are owned as lists
of arena indices on their parent; every node stores the index of its
parent, which is only ever used to look the parent up again.  Indices are
assigned while parsing, so arena order is document pre-order.

Usage::

    from htmlquery.document import build_document

    doc = build_document("<ul><li>one<li>two</ul>")
    for index in doc.iter_elements():
        print(doc[index].tag)

Parsing never fails: unclosed elements are closed at end of input, implied
end tags are inserted (``<li>``, ``<p>``, table parts, ...), stray end tags
are ignored, and a tag truncated at end of input is dropped.  Character
references are kept raw in text nodes; decoding them is the job of the
extraction layer.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterator
from dataclasses import dataclass, field
from html.parser import HTMLParser

from bs4.dammit import UnicodeDammit

logger = logging.getLogger(__name__)

DOCUMENT_TAG = "#document"

VOID_ELEMENTS: frozenset[str] = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "keygen", "link", "meta", "param", "source", "track", "wbr",
    },
)

# Start tags that close an open <p> (HTML "closes a p element" list).
_P_CLOSERS: frozenset[str] = frozenset(
    {
        "address", "article", "aside", "blockquote", "details", "dialog",
        "div", "dl", "fieldset", "figcaption", "figure", "footer", "form",
        "h1", "h2", "h3", "h4", "h5", "h6", "header", "hgroup", "hr", "main",
        "menu", "nav", "ol", "p", "pre", "section", "table", "ul",
    },
)

_BUTTON_SCOPE: frozenset[str] = frozenset(
    {"applet", "button", "caption", "html", "marquee", "object", "table",
     "td", "template", "th"},
)

_TABLE_SECTIONS: frozenset[str] = frozenset({"thead", "tbody", "tfoot"})

# start tag -> (open tags it implicitly ends, tags that bound the search)
_IMPLIED_END: dict[str, tuple[frozenset[str], frozenset[str]]] = {
    "li": (frozenset({"li"}), frozenset({"ul", "ol", "menu"})),
    "dt": (frozenset({"dt", "dd"}), frozenset({"dl"})),
    "dd": (frozenset({"dt", "dd"}), frozenset({"dl"})),
    "option": (frozenset({"option"}), frozenset({"select", "datalist", "optgroup"})),
    "optgroup": (frozenset({"option", "optgroup"}), frozenset({"select"})),
    "tr": (frozenset({"tr"}), frozenset({"table"}) | _TABLE_SECTIONS),
    "td": (frozenset({"td", "th"}), frozenset({"tr", "table"})),
    "th": (frozenset({"td", "th"}), frozenset({"tr", "table"})),
    "thead": (_TABLE_SECTIONS, frozenset({"table"})),
    "tbody": (_TABLE_SECTIONS, frozenset({"table"})),
    "tfoot": (_TABLE_SECTIONS, frozenset({"table"})),
}
for _tag in _P_CLOSERS:
    _IMPLIED_END.setdefault(_tag, (frozenset({"p"}), _BUTTON_SCOPE))


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

@dataclass
class Element:
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    children: list[int] = field(default_factory=list)
    parent: int | None = None
    # Verbatim start tag from the source, reused when serialising.
    source: str | None = None

    @property
    def is_void(self) -> bool:
        return self.tag in VOID_ELEMENTS


@dataclass
class Text:
    data: str  # raw source text, character references not decoded
    parent: int | None = None


@dataclass
class Comment:
    data: str
    parent: int | None = None


Node = Element | Text | Comment


@dataclass
class Document:
    """Arena of nodes; ``nodes[root]`` is the synthetic document node."""

    nodes: list[Node]
    root: int = 0
    doctype: str | None = None

    def __getitem__(self, index: int) -> Node:
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def is_element(self, index: int) -> bool:
        node = self.nodes[index]
        return isinstance(node, Element) and node.tag != DOCUMENT_TAG

    def element(self, index: int) -> Element:
        node = self.nodes[index]
        if not isinstance(node, Element):
            raise TypeError(f"node {index} is not an element")
        return node

    def iter_descendants(
        self, index: int | None = None, skip: Collection[int] = (),
    ) -> Iterator[int]:
        """Yield the descendants of *index* (default: root) in pre-order.

        Subtrees rooted at an index in *skip* are neither yielded nor entered.
        """
        start = self.root if index is None else index
        node = self.nodes[start]
        if not isinstance(node, Element):
            return
        stack = list(reversed(node.children))
        while stack:
            current = stack.pop()
            if current in skip:
                continue
            yield current
            child = self.nodes[current]
            if isinstance(child, Element):
                stack.extend(reversed(child.children))

    def iter_elements(self, scope: int | None = None) -> Iterator[int]:
        """Yield element indices below *scope* (default: whole document)."""
        for index in self.iter_descendants(scope):
            if self.is_element(index):
                yield index

    def element_children(self, index: int) -> list[int]:
        node = self.nodes[index]
        if not isinstance(node, Element):
            return []
        return [c for c in node.children if isinstance(self.nodes[c], Element)]

    def parent_of(self, index: int) -> int | None:
        return self.nodes[index].parent

    def first_element(self, tag: str) -> int | None:
        for index in self.iter_elements():
            if self.element(index).tag == tag:
                return index
        return None


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class _TreeBuilder(HTMLParser):
    """Feeds ``html.parser`` tokens into a :class:`Document` arena."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.nodes: list[Node] = [Element(DOCUMENT_TAG)]
        self.open_stack: list[int] = [0]
        self.doctype: str | None = None
        # Pieces of the text node currently being extended, joined on flush.
        self._text_index: int | None = None
        self._text_pieces: list[str] = []

    # -- arena helpers -----------------------------------------------------

    def _append(self, node: Node) -> int:
        if not isinstance(node, Text):
            self._flush_text()
        parent = self.open_stack[-1]
        node.parent = parent
        self.nodes.append(node)
        index = len(self.nodes) - 1
        self._current().children.append(index)
        return index

    def _current(self) -> Element:
        node = self.nodes[self.open_stack[-1]]
        assert isinstance(node, Element)
        return node

    def _flush_text(self) -> None:
        if self._text_index is not None:
            node = self.nodes[self._text_index]
            assert isinstance(node, Text)
            node.data = "".join(self._text_pieces)
            self._text_index = None
            self._text_pieces = []

    def _append_text(self, data: str) -> None:
        if not data:
            return
        siblings = self._current().children
        if siblings and siblings[-1] == self._text_index:
            self._text_pieces.append(data)
            return
        self._flush_text()
        if siblings and isinstance(self.nodes[siblings[-1]], Text):
            index = siblings[-1]
            self._text_pieces = [self.nodes[index].data, data]
        else:
            index = self._append(Text(data))
            self._text_pieces = [data]
        self._text_index = index

    def _tag_at(self, depth: int) -> str:
        node = self.nodes[self.open_stack[depth]]
        return node.tag if isinstance(node, Element) else ""

    def _close_implied(self, tag: str) -> None:
        rule = _IMPLIED_END.get(tag)
        if rule is None:
            return
        targets, boundary = rule
        found = None
        for depth in range(len(self.open_stack) - 1, 0, -1):
            open_tag = self._tag_at(depth)
            if open_tag in targets:
                found = depth
            elif open_tag in boundary:
                break
        if found is not None:
            logger.debug("Implicitly closing <%s> before <%s>", self._tag_at(found), tag)
            del self.open_stack[found:]

    def _open(self, tag: str, attrs: list[tuple[str, str | None]], *, self_closing: bool) -> None:
        self._close_implied(tag)
        attr_map: dict[str, str] = {}
        for name, value in attrs:
            attr_map.setdefault(name, "" if value is None else value)
        source = self.get_starttag_text()
        if self_closing and tag not in VOID_ELEMENTS:
            source = None
        index = self._append(Element(tag, attr_map, source=source))
        if not self_closing and tag not in VOID_ELEMENTS:
            self.open_stack.append(index)

    # -- HTMLParser callbacks ------------------------------------------------

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._open(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._open(tag, attrs, self_closing=True)

    def handle_endtag(self, tag: str) -> None:
        if tag in VOID_ELEMENTS:
            return
        for depth in range(len(self.open_stack) - 1, 0, -1):
            if self._tag_at(depth) == tag:
                if depth != len(self.open_stack) - 1:
                    logger.debug("</%s> closes %d unclosed element(s)", tag,
                                 len(self.open_stack) - 1 - depth)
                del self.open_stack[depth:]
                return
        logger.debug("Ignoring stray </%s>", tag)

    def handle_data(self, data: str) -> None:
        self._append_text(data)

    def handle_entityref(self, name: str) -> None:
        self._append_text(f"&{name};")

    def handle_charref(self, name: str) -> None:
        self._append_text(f"&#{name};")

    def handle_comment(self, data: str) -> None:
        self._append(Comment(data))

    def handle_decl(self, decl: str) -> None:
        if decl.lower().startswith("doctype") and self.doctype is None:
            self.doctype = f"<!{decl}>"

    def unknown_decl(self, data: str) -> None:
        # <![CDATA[...]]> outside foreign content is a bogus comment in HTML.
        self._append(Comment(f"[{data}]"))

    def handle_pi(self, data: str) -> None:
        logger.debug("Ignoring processing instruction <?%s>", data[:40])

    def close(self) -> None:
        tail = self.rawdata
        if self.cdata_elem:
            # Input ended inside <script>/<style>: keep the text, drop a
            # partial end tag.
            cut = tail.rfind("<")
            if cut != -1 and f"</{self.cdata_elem}".startswith(tail[cut:].lower()):
                logger.debug("Dropping truncated end tag at end of input: %r", tail[cut:])
                tail = tail[:cut]
            self.rawdata = ""
            self._append_text(tail)
            self.clear_cdata_mode()
        elif tail.startswith("<") and ">" not in tail:
            logger.debug("Dropping truncated tag at end of input: %.40r", tail)
            self.rawdata = ""
        super().close()
        self._flush_text()


def _to_text(markup: str | bytes) -> str:
    if isinstance(markup, str):
        return markup
    dammit = UnicodeDammit(markup, is_html=True)
    if dammit.unicode_markup is None:
        logger.debug("Encoding detection failed; decoding as UTF-8 with replacement")
        return markup.decode("utf-8", errors="replace")
    return dammit.unicode_markup


def build_document(markup: str | bytes) -> Document:
    """Parse *markup* into a :class:`Document`.  Never raises on bad HTML."""
    builder = _TreeBuilder()
    builder.feed(_to_text(markup))
    builder.close()
    return Document(nodes=builder.nodes, root=0, doctype=builder.doctype)
