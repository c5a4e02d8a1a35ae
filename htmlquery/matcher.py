"""htmlquery.matcher - evaluate compiled selectors against a Document.

Candidates are visited in document pre-order and tested against the
rightmost compound of each selector; the remaining compounds are checked by
walking up (descendant / child) or sideways (adjacent sibling) through the
arena.  Position pseudo-classes are computed from the parent's child list;
sibling lists and partial chain results are cached for the duration of one
call only, never on the nodes themselves.
"""

from __future__ import annotations

from htmlquery.document import Document, Element
from htmlquery.selector import (
    AttributeTest,
    Combinator,
    ComplexSelector,
    CompoundSelector,
    PseudoClass,
    SelectorList,
    compile_selector,
)


def _as_selector(selector: SelectorList | str) -> SelectorList:
    if isinstance(selector, str):
        return compile_selector(selector)
    return selector


# ---------------------------------------------------------------------------
# Per-call state
# ---------------------------------------------------------------------------

class _MatchContext:
    """Caches that live for one :func:`select` / :func:`matches` call.

    ``siblings`` maps a parent to its element children, ``positions`` maps an
    element to its 0-based index in that list, and ``memo`` holds the result of
    checking the left part of a selector chain from a given element.
    """

    def __init__(self, doc: Document) -> None:
        self.doc = doc
        self.siblings: dict[int, list[int]] = {}
        self.positions: dict[int, int] = {}
        self.memo: dict[tuple[int, int, int], bool] = {}

    def element_siblings(self, index: int) -> list[int] | None:
        parent = self.doc.parent_of(index)
        if parent is None:
            return None
        found = self.siblings.get(parent)
        if found is None:
            found = self.doc.element_children(parent)
            self.siblings[parent] = found
            for position, child in enumerate(found):
                self.positions[child] = position
        return found


# ---------------------------------------------------------------------------
# Simple selectors
# ---------------------------------------------------------------------------

def _element_position(ctx: _MatchContext, index: int) -> tuple[int, int]:
    """Return (1-based position, sibling count) among the parent's element children."""
    siblings = ctx.element_siblings(index)
    if siblings is None:
        return 1, 1
    return ctx.positions[index] + 1, len(siblings)


def _matches_attribute(element: Element, test: AttributeTest) -> bool:
    value = element.attrs.get(test.name)
    if value is None:
        return False
    return test.value is None or value == test.value


def _matches_pseudo(ctx: _MatchContext, index: int, pseudo: PseudoClass) -> bool:
    if pseudo.name == "root":
        return ctx.doc.parent_of(index) == ctx.doc.root
    position, count = _element_position(ctx, index)
    if pseudo.name == "first-child":
        return position == 1
    if pseudo.name == "last-child":
        return position == count
    if pseudo.name == "nth-child":
        return position == pseudo.position
    return False


def _matches_compound(ctx: _MatchContext, index: int, compound: CompoundSelector) -> bool:
    doc = ctx.doc
    if not doc.is_element(index):
        return False
    element = doc.element(index)
    if compound.tag is not None and element.tag != compound.tag:
        return False
    if compound.id is not None and element.attrs.get("id") != compound.id:
        return False
    if compound.classes:
        classes = element.attrs.get("class", "").split()
        if not all(name in classes for name in compound.classes):
            return False
    if not all(_matches_attribute(element, test) for test in compound.attributes):
        return False
    return all(_matches_pseudo(ctx, index, pseudo) for pseudo in compound.pseudo_classes)


def matches_compound(doc: Document, index: int, compound: CompoundSelector) -> bool:
    """True when element *index* satisfies every constraint of *compound*."""
    return _matches_compound(_MatchContext(doc), index, compound)


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------

def _previous_element_sibling(ctx: _MatchContext, index: int) -> int | None:
    siblings = ctx.element_siblings(index)
    if siblings is None:
        return None
    position = ctx.positions[index]
    return siblings[position - 1] if position > 0 else None


def _matches_from(ctx: _MatchContext, index: int, parts: list, part: int) -> bool:
    """Check compounds ``parts[:part]`` given that ``parts[part]`` matched *index*.

    Results are memoised per (element, part), so every element is checked at
    most once for each step of the chain.
    """
    if part == 0:
        return True
    key = (id(parts), index, part)
    cached = ctx.memo.get(key)
    if cached is not None:
        return cached

    doc = ctx.doc
    combinator = parts[part][0]
    previous = parts[part - 1][1]

    if combinator is Combinator.CHILD or combinator is Combinator.ADJACENT_SIBLING:
        if combinator is Combinator.CHILD:
            other = doc.parent_of(index)
        else:
            other = _previous_element_sibling(ctx, index)
        result = (
            other is not None
            and _matches_compound(ctx, other, previous)
            and _matches_from(ctx, other, parts, part - 1)
        )
        ctx.memo[key] = result
        return result

    # Descendant: walk up until an ancestor satisfies the rest of the chain or
    # an ancestor whose answer for this step is already known.
    visited = [index]
    result = False
    ancestor = doc.parent_of(index)
    while ancestor is not None:
        if _matches_compound(ctx, ancestor, previous) and _matches_from(
            ctx, ancestor, parts, part - 1,
        ):
            result = True
            break
        known = ctx.memo.get((id(parts), ancestor, part))
        if known is not None:
            result = known
            break
        visited.append(ancestor)
        ancestor = doc.parent_of(ancestor)
    for node in visited:
        ctx.memo[(id(parts), node, part)] = result
    return result


def _matches_complex(ctx: _MatchContext, index: int, selector: ComplexSelector) -> bool:
    parts = selector.parts
    last = len(parts) - 1
    return _matches_compound(ctx, index, parts[last][1]) and _matches_from(ctx, index, parts, last)


def _matches_any(ctx: _MatchContext, index: int, compiled: SelectorList) -> bool:
    return any(_matches_complex(ctx, index, sel) for sel in compiled.selectors)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def matches(doc: Document, index: int, selector: SelectorList | str) -> bool:
    """True when element *index* matches any selector of the list."""
    return _matches_any(_MatchContext(doc), index, _as_selector(selector))


def select(doc: Document, selector: SelectorList | str, scope: int | None = None) -> list[int]:
    """Return every matching element index in document order, without duplicates.

    Args:
        doc:      Parsed document.
        selector: Compiled selector list or selector text.
        scope:    Only consider descendants of this element (default: whole document).
    """
    compiled = _as_selector(selector)
    ctx = _MatchContext(doc)
    return [index for index in doc.iter_elements(scope) if _matches_any(ctx, index, compiled)]


def select_first(doc: Document, selector: SelectorList | str, scope: int | None = None) -> int | None:
    """First element of :func:`select`, or ``None`` when nothing matches."""
    found = select(doc, selector, scope)
    return found[0] if found else None
