"""htmlquery.selector - CSS selector compiler.

Supported grammar (a deliberate subset of CSS)::

    selector-list  := complex ( "," complex )*
    complex        := compound ( combinator compound )*
    combinator     := whitespace | ">" | "+"
    compound       := ( tag | "*" )? ( "." class | "#" id | attribute | pseudo )*
    attribute      := "[" name "]" | "[" name "=" ( ident | "'" ... "'" | '"' ... '"' ) "]"
    pseudo         := ":first-child" | ":last-child" | ":root" | ":nth-child(" N ")"

Compiled selectors keep the source order of their compounds; the matcher
walks them right to left.  Every syntax problem raises
:class:`~htmlquery.errors.SelectorSyntaxError` with the offset of the
offending character.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from htmlquery.errors import SelectorSyntaxError

_WHITESPACE = " \t\n\r\f"
_POSITIONAL_PSEUDOS: frozenset[str] = frozenset({"first-child", "last-child", "root"})


class Combinator(str, Enum):
    DESCENDANT = " "
    CHILD = ">"
    ADJACENT_SIBLING = "+"


@dataclass(frozen=True)
class AttributeTest:
    name: str
    value: str | None = None  # None means presence only


@dataclass(frozen=True)
class PseudoClass:
    name: str
    position: int | None = None  # only for nth-child


@dataclass
class CompoundSelector:
    tag: str | None = None
    classes: list[str] = field(default_factory=list)
    id: str | None = None
    attributes: list[AttributeTest] = field(default_factory=list)
    pseudo_classes: list[PseudoClass] = field(default_factory=list)


@dataclass
class ComplexSelector:
    # (combinator to the previous compound, compound); the first pair has None.
    parts: list[tuple[Combinator | None, CompoundSelector]] = field(default_factory=list)


@dataclass
class SelectorList:
    selectors: list[ComplexSelector]
    text: str = ""


def _is_name_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_-" or ord(ch) > 127


def _is_name_char(ch: str) -> bool:
    return _is_name_start(ch) or ch.isdigit()


class _SelectorParser:
    """Single-pass recursive-descent parser over the selector text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.length = len(text)

    # -- low level -------------------------------------------------------

    def _error(self, message: str, offset: int | None = None) -> SelectorSyntaxError:
        return SelectorSyntaxError(message, self.text, self.pos if offset is None else offset)

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < self.length else ""

    def _at_end(self) -> bool:
        return self.pos >= self.length

    def _skip_whitespace(self) -> bool:
        start = self.pos
        while self.pos < self.length and self.text[self.pos] in _WHITESPACE:
            self.pos += 1
        return self.pos > start

    def _read_name(self) -> str:
        chars: list[str] = []
        while self.pos < self.length:
            ch = self.text[self.pos]
            if ch == "\\" and self.pos + 1 < self.length:
                chars.append(self.text[self.pos + 1])
                self.pos += 2
            elif _is_name_char(ch):
                chars.append(ch)
                self.pos += 1
            else:
                break
        return "".join(chars)

    def _read_string(self) -> str:
        quote_at = self.pos
        quote = self.text[self.pos]
        self.pos += 1
        chars: list[str] = []
        while self.pos < self.length:
            ch = self.text[self.pos]
            if ch == quote:
                self.pos += 1
                return "".join(chars)
            if ch == "\\" and self.pos + 1 < self.length:
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            chars.append(ch)
            self.pos += 1
        raise self._error("unterminated string", quote_at)

    # -- grammar ---------------------------------------------------------

    def parse(self) -> SelectorList:
        self._skip_whitespace()
        if self._at_end():
            raise self._error("empty selector")
        selectors = [self._parse_complex()]
        while self._peek() == ",":
            self.pos += 1
            self._skip_whitespace()
            if self._at_end() or self._peek() == ",":
                raise self._error("empty selector in group")
            selectors.append(self._parse_complex())
        if not self._at_end():
            raise self._error(f"unexpected character {self._peek()!r}")
        return SelectorList(selectors=selectors, text=self.text)

    def _parse_complex(self) -> ComplexSelector:
        complex_sel = ComplexSelector()
        complex_sel.parts.append((None, self._parse_compound()))
        while True:
            had_whitespace = self._skip_whitespace()
            ch = self._peek()
            if ch in ("", ","):
                break
            if ch in ">+":
                combinator = Combinator(ch)
                self.pos += 1
                self._skip_whitespace()
                if self._at_end() or self._peek() in ",>+":
                    raise self._error("expected selector after combinator")
            elif had_whitespace:
                combinator = Combinator.DESCENDANT
            else:
                raise self._error(f"unexpected character {ch!r}")
            complex_sel.parts.append((combinator, self._parse_compound()))
        return complex_sel

    def _parse_compound(self) -> CompoundSelector:
        start = self.pos
        compound = CompoundSelector()
        ch = self._peek()
        if ch == "*":
            self.pos += 1
        elif ch and _is_name_start(ch):
            compound.tag = self._read_name().lower()

        while True:
            ch = self._peek()
            if ch == ".":
                self.pos += 1
                name = self._read_name()
                if not name:
                    raise self._error("expected class name after '.'")
                compound.classes.append(name)
            elif ch == "#":
                hash_at = self.pos
                self.pos += 1
                name = self._read_name()
                if not name:
                    raise self._error("expected id after '#'")
                if compound.id is not None:
                    raise self._error("more than one id in a compound selector", hash_at)
                compound.id = name
            elif ch == "[":
                compound.attributes.append(self._parse_attribute())
            elif ch == ":":
                compound.pseudo_classes.append(self._parse_pseudo())
            elif ch == "*" or (ch and _is_name_start(ch) and self.pos > start):
                raise self._error("type selector must come first in a compound")
            else:
                break

        if self.pos == start:
            if self._at_end():
                raise self._error("expected selector")
            raise self._error(f"unexpected character {self._peek()!r}")
        return compound

    def _parse_attribute(self) -> AttributeTest:
        open_at = self.pos
        self.pos += 1
        self._skip_whitespace()
        name = self._read_name()
        if not name:
            if self._at_end():
                raise self._error("unterminated attribute selector", open_at)
            raise self._error("expected attribute name")
        self._skip_whitespace()
        ch = self._peek()
        if ch == "]":
            self.pos += 1
            return AttributeTest(name.lower())
        if ch == "":
            raise self._error("unterminated attribute selector", open_at)
        if ch != "=":
            raise self._error(f"unsupported attribute operator starting with {ch!r}")
        self.pos += 1
        self._skip_whitespace()
        ch = self._peek()
        if ch in ("'", '"'):
            value = self._read_string()
        else:
            value_at = self.pos
            value = self._read_name()
            if not value:
                if self._at_end():
                    raise self._error("unterminated attribute selector", open_at)
                raise self._error("expected attribute value", value_at)
        self._skip_whitespace()
        if self._at_end():
            raise self._error("unterminated attribute selector", open_at)
        if self._peek() != "]":
            raise self._error(f"expected ']' but found {self._peek()!r}")
        self.pos += 1
        return AttributeTest(name.lower(), value)

    def _parse_pseudo(self) -> PseudoClass:
        colon_at = self.pos
        self.pos += 1
        name = self._read_name().lower()
        if not name:
            raise self._error("expected pseudo-class name after ':'")
        if self._peek() == "(":
            paren_at = self.pos
            if name != "nth-child":
                raise self._error(f"unknown pseudo-class ':{name}()'", colon_at)
            self.pos += 1
            close = self.text.find(")", self.pos)
            if close == -1:
                raise self._error("unterminated '('", paren_at)
            raw = self.text[self.pos:close]
            arg_at = self.pos + (len(raw) - len(raw.lstrip()))
            arg = raw.strip()
            if not arg or not (arg.isascii() and arg.isdigit()):
                raise self._error(f"nth-child argument must be a positive integer, got {arg!r}", arg_at)
            position = int(arg)
            if position < 1:
                raise self._error("nth-child argument must be a positive integer", arg_at)
            self.pos = close + 1
            return PseudoClass(name, position)
        if name == "nth-child":
            raise self._error("nth-child requires an argument", self.pos)
        if name not in _POSITIONAL_PSEUDOS:
            raise self._error(f"unknown pseudo-class ':{name}'", colon_at)
        return PseudoClass(name)


def compile_selector(text: str) -> SelectorList:
    """Compile *text* into a :class:`SelectorList`.

    Raises:
        SelectorSyntaxError: when *text* does not follow the supported grammar.
    """
    return _SelectorParser(text).parse()
