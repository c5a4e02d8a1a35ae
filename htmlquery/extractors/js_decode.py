"""Recover JSON values from JavaScript embedded in ``<script>`` elements.

Pages ship data to the browser in three common shapes:

* LD+JSON blocks - the script body *is* JSON (possibly with HTML entities)::

      <script type="application/ld+json">{"name": "Widget &amp; Co"}</script>

* a bare literal assigned to a variable::

      var config = {"debug": true};

* a JSON document serialised into a JavaScript string literal::

      var jobs = JSON.parse('[{\\x22City\\x22:\\x22Montr\\xc3\\xa9al\\x22}]');

The last shape goes through a fixed pipeline of text rewrites.  Each stage
is a separate function so it can be tested on its own; the order matters,
later stages assume the earlier ones already ran:

1. :func:`decode_hex_escapes`        ``\\xHH`` → character
2. :func:`collapse_escaped_unicode`  ``\\\\u`` → ``\\u``
3. :func:`strip_js_only_escapes`     ``\\-`` → ``-``, ``\\/`` → ``/``
4. :func:`decode_standard_escapes`   ``\\uXXXX``, ``\\n``, ``\\"``, ``\\\\`` ...
5. :func:`parse_json`
6. :func:`repair_mojibake` on every string value of the parsed tree
"""

from __future__ import annotations

import json
import logging
import re
from html import unescape
from typing import Any

from htmlquery.errors import JsonDecodeError

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel for "the variable is not assigned in this script"."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_HEX_ESCAPE_RE = re.compile(r"\\x([0-9A-Fa-f]{2})")
_HEX4_RE = re.compile(r"[0-9A-Fa-f]{4}")

_SIMPLE_ESCAPES: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
    '"': '"',
    "'": "'",
    "\\": "\\",
}

# Characters that continue an expression on the next line.
_CONTINUATION_CHARS = ".,+-*/?:&|"


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

def decode_hex_escapes(text: str) -> str:
    """Stage 1: replace every ``\\xHH`` with the character U+00HH.

    A ``\\x`` not followed by two hex digits is left untouched.
    """
    if "\\x" not in text:
        return text
    return _HEX_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), text)


def collapse_escaped_unicode(text: str) -> str:
    """Stage 2: undo one level of re-escaping by turning ``\\\\u`` into ``\\u``."""
    return text.replace("\\\\u", "\\u")


def strip_js_only_escapes(text: str) -> str:
    """Stage 3: drop escapes JavaScript accepts but strict JSON rejects."""
    return text.replace("\\-", "-").replace("\\/", "/")


def decode_standard_escapes(text: str) -> str:
    """Stage 4: resolve the remaining backslash escapes left to right.

    Handles ``\\uXXXX`` (joining UTF-16 surrogate pairs), the single-character
    escapes of JSON and JavaScript, and drops the backslash of any other
    escape.  A ``\\u`` without four hex digits is kept verbatim.
    """
    if "\\" not in text:
        return text
    out: list[str] = []
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch != "\\" or i + 1 >= length:
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2:i + 6]
            if not _HEX4_RE.fullmatch(digits):
                out.append("\\u")
                i += 2
                continue
            code = int(digits, 16)
            i += 6
            if 0xD800 <= code <= 0xDBFF and text.startswith("\\u", i):
                low_digits = text[i + 2:i + 6]
                if _HEX4_RE.fullmatch(low_digits):
                    low = int(low_digits, 16)
                    if 0xDC00 <= low <= 0xDFFF:
                        code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                        i += 6
            out.append(chr(code))
            continue
        out.append(_SIMPLE_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


def parse_json(text: str) -> Any:
    """Stage 5: parse *text* as a JSON value.

    Raw control characters inside strings are accepted, since stage 4 turns
    ``\\n`` escapes into real newlines.  ``NaN`` and ``Infinity`` are rejected.

    Raises:
        JsonDecodeError: when *text* is not a JSON value.
    """
    try:
        return json.loads(text.strip(), strict=False, parse_constant=_reject_constant)
    except ValueError as exc:
        raise JsonDecodeError(str(exc), stage="parse", text=text) from exc


def repair_mojibake(text: str) -> str:
    """Undo UTF-8 that was decoded one byte at a time (``"CafÃ©"`` → ``"Café"``).

    Returns *text* unchanged when any character is above U+00FF or when the
    bytes are not valid UTF-8.
    """
    try:
        return text.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return text


def repair_strings(value: Any) -> Any:
    """Stage 6: apply :func:`repair_mojibake` to every string value (not keys)."""
    if isinstance(value, str):
        return repair_mojibake(value)
    if isinstance(value, list):
        return [repair_strings(item) for item in value]
    if isinstance(value, dict):
        return {key: repair_strings(item) for key, item in value.items()}
    return value


def decode_js_string(text: str) -> str:
    """Run stages 1–4 on the body of a JavaScript string literal."""
    text = decode_hex_escapes(text)
    text = collapse_escaped_unicode(text)
    text = strip_js_only_escapes(text)
    return decode_standard_escapes(text)


def decode_script_json(text: str) -> Any:
    """Run the full six-stage pipeline on a JavaScript string literal body.

    Raises:
        JsonDecodeError: when the decoded text does not parse as JSON.
    """
    return repair_strings(parse_json(decode_js_string(text)))


# ---------------------------------------------------------------------------
# LD+JSON and bare literals
# ---------------------------------------------------------------------------

def _unescape_strings(value: Any) -> Any:
    if isinstance(value, str):
        return unescape(value) if "&" in value else value
    if isinstance(value, list):
        return [_unescape_strings(item) for item in value]
    if isinstance(value, dict):
        return {key: _unescape_strings(item) for key, item in value.items()}
    return value


def parse_embedded_json(text: str) -> Any:
    """Parse JSON found verbatim in a script body, decoding HTML entities.

    The raw text is tried first and entities are decoded inside string
    values; if it does not parse, the entities are decoded first and the
    result is parsed instead.

    Raises:
        JsonDecodeError: when neither form parses.
    """
    try:
        return _unescape_strings(parse_json(text))
    except JsonDecodeError:
        if "&" not in text:
            raise
        logger.debug("Raw script text is not JSON; retrying after entity decoding")
    return parse_json(unescape(text))


# ---------------------------------------------------------------------------
# JavaScript variable assignments
# ---------------------------------------------------------------------------

def _assignment_re(pattern: str) -> re.Pattern[str]:
    # "var jobs" must not match "var jobsList", and "=" must not be "==".
    return re.compile(re.escape(pattern.strip()) + r"(?![\w$])\s*=(?!=)\s*")


def _read_until_statement_end(text: str) -> str:
    """Return the expression at the start of *text*, up to its terminator.

    The expression ends at a ``;`` or line break that is outside every
    string, object and array, or at end of text.  A line break is not a
    terminator when the next line starts with a continuation character.
    """
    depth = 0
    quote = ""
    escaped = False
    for i, ch in enumerate(text):
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if quote:
            if ch == quote:
                quote = ""
            continue
        if ch in "\"'`":
            quote = ch
        elif ch in "{[(":
            depth += 1
        elif ch in "}])":
            depth -= 1
        elif depth <= 0 and ch == ";":
            return text[:i]
        elif depth <= 0 and ch == "\n":
            rest = text[i + 1:].lstrip()
            if not rest or rest[0] not in _CONTINUATION_CHARS:
                return text[:i]
    return text


def _read_quoted(text: str) -> str | None:
    """Return the body of the string literal *text* starts with, escapes intact."""
    if not text or text[0] not in "'\"":
        return None
    quote = text[0]
    escaped = False
    for i in range(1, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == quote:
            return text[1:i]
    return None


def extract_js_variable(script: str, pattern: str) -> Any:
    """Return the value assigned by the first ``<pattern> = ...`` in *script*.

    *pattern* is the declaration prefix, e.g. ``"var jobs"`` or
    ``"window.__STATE__"``.  ``JSON.parse('...')`` right-hand sides run the
    full decoding pipeline; anything else must be a JSON literal.

    Returns:
        The decoded value, or :data:`MISSING` when the assignment is absent.

    Raises:
        JsonDecodeError: when the right-hand side cannot be decoded.
    """
    match = _assignment_re(pattern).search(script)
    if match is None:
        return MISSING
    remaining = script[match.end():]

    if remaining.startswith("JSON.parse("):
        literal = _read_quoted(remaining[len("JSON.parse("):].lstrip())
        if literal is None:
            raise JsonDecodeError(
                f"JSON.parse() argument for {pattern!r} is not a string literal",
                stage="locate",
                text=remaining,
            )
        return decode_script_json(literal)

    expression = _read_until_statement_end(remaining).strip()
    if not expression:
        raise JsonDecodeError(f"empty right-hand side for {pattern!r}", stage="locate")
    try:
        return parse_embedded_json(expression)
    except JsonDecodeError as exc:
        raise JsonDecodeError(
            f"right-hand side of {pattern!r} is neither JSON.parse() nor a JSON literal",
            stage="locate",
            text=expression,
        ) from exc
