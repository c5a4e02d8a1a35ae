"""Exception hierarchy for htmlquery.

Besides an empty variable pattern, only two conditions are ever raised to
callers: a selector that does not follow the supported grammar, and
embedded script text that cannot be turned into JSON.  Malformed HTML is
always repaired, and a missing match or attribute is a ``None`` / empty
result, never an exception.
"""

from __future__ import annotations

from htmlquery.settings import ERROR_SNIPPET_CHARS


class HtmlQueryError(ValueError):
    """Base class for every error raised by htmlquery."""


class SelectorSyntaxError(HtmlQueryError):
    """Raised when a CSS selector cannot be compiled.

    Attributes:
        selector -- the selector text that failed to compile
        offset   -- 0-based character offset of the offending character
    """

    def __init__(self, message: str, selector: str = "", offset: int = 0) -> None:
        super().__init__(f"{message} at offset {offset} in {selector!r}")
        self.reason = message
        self.selector = selector
        self.offset = offset


class JsonDecodeError(HtmlQueryError):
    """Raised when script text cannot be decoded into a JSON value.

    Attributes:
        stage -- decoder stage that gave up (``"locate"`` or ``"parse"``)
        text  -- the (truncated) text the stage was working on
    """

    def __init__(self, message: str, stage: str = "parse", text: str = "") -> None:
        super().__init__(f"[{stage}] {message}")
        self.reason = message
        self.stage = stage
        self.text = text[:ERROR_SNIPPET_CHARS]
