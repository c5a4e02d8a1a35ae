"""htmlquery.query - element and JSON extraction queries over HTML text.

Every call parses its own document and compiles its own selector; nothing
is shared between calls, so the functions are safe to run from many
threads at once.

Basic usage::

    from htmlquery.query import query, query_all, extract_json

    query(html, "title", "@text")            # first match or None
    query_all(html, "a.product", "@href")    # every match, document order
    extract_json(html, 'script[type="application/ld+json"]')
    extract_json(html, "script", "var jobs")

CLI-style processing (removal, link rewriting, pretty / compact output)::

    from htmlquery.items import QueryConfig
    from htmlquery.query import process_html

    print(process_html(html, QueryConfig(selector="#main", remove_nodes=["nav"])))
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import urljoin

from htmlquery import settings
from htmlquery.document import Document, build_document
from htmlquery.errors import HtmlQueryError, JsonDecodeError
from htmlquery.extractors.content import (
    ExtractMode,
    attribute_value,
    extract as render_element,
    raw_text,
    text_content,
)
from htmlquery.extractors.js_decode import MISSING, extract_js_variable, parse_embedded_json
from htmlquery.extractors.links import URL_ATTRIBUTES, detect_base, is_absolute_url
from htmlquery.extractors.markup import outer_html, pretty_html
from htmlquery.items import ExtractionFailure, JsonExtraction, QueryConfig
from htmlquery.matcher import select
from htmlquery.selector import SelectorList, compile_selector

logger = logging.getLogger(__name__)

Markup = str | bytes
ExtractArg = ExtractMode | str | Sequence[str] | None


def _compiled(selector: SelectorList | str) -> SelectorList:
    return selector if isinstance(selector, SelectorList) else compile_selector(selector)


# ---------------------------------------------------------------------------
# Element queries
# ---------------------------------------------------------------------------

def query_all(
    html: Markup | None,
    selector: SelectorList | str = settings.DEFAULT_SELECTOR,
    extract: ExtractArg = ExtractMode.HTML,
) -> list[str]:
    """Return one string per matching element, in document order.

    Elements lacking a requested attribute contribute nothing, so the result
    holds only present values.

    Args:
        html:         Markup (``str`` or undecoded ``bytes``); ``None`` gives ``[]``.
        selector:     Selector text or a compiled :class:`SelectorList`.
        extract:      :class:`ExtractMode` or its string / list shorthand.

    Raises:
        SelectorSyntaxError: when *selector* does not compile (not checked
            when *html* is ``None``).
    """
    if html is None:
        return []
    compiled = _compiled(selector)
    mode = ExtractMode.coerce(extract)
    doc = build_document(html)
    results: list[str] = []
    for index in select(doc, compiled):
        value = render_element(doc, index, mode)
        if value is not None:
            results.append(value)
    return results


def query(
    html: Markup | None,
    selector: SelectorList | str = settings.DEFAULT_SELECTOR,
    extract: ExtractArg = ExtractMode.HTML,
) -> str | None:
    """Return the first element of :func:`query_all`, or ``None``."""
    results = query_all(html, selector, extract)
    return results[0] if results else None


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def _decode_element(doc: Document, index: int, var_pattern: str | None) -> Any:
    script = raw_text(doc, index)
    if var_pattern is None:
        return parse_embedded_json(script)
    return extract_js_variable(script, var_pattern)


def extract_json_detailed(
    html: Markup | None,
    selector: SelectorList | str,
    var_pattern: str | None = None,
) -> JsonExtraction:
    """Decode JSON from every element matched by *selector*.

    Without *var_pattern* each element's text is parsed as JSON (LD+JSON
    mode).  With it, the value assigned by ``<var_pattern> = ...`` inside the
    element's text is decoded; elements that do not contain the assignment
    are skipped.  Elements that fail to decode are recorded in
    :attr:`JsonExtraction.failures` and logged; they never stop the others.
    A ``None`` *html* gives an empty result without compiling anything.

    Raises:
        SelectorSyntaxError: when *selector* does not compile.
        HtmlQueryError: when *var_pattern* is given but blank.
    """
    if html is None:
        return JsonExtraction()
    compiled = _compiled(selector)
    if var_pattern is not None and not var_pattern.strip():
        raise HtmlQueryError("variable pattern must not be empty")
    result = JsonExtraction()

    doc = build_document(html)
    matched = select(doc, compiled)
    result.matched = len(matched)
    for position, index in enumerate(matched):
        try:
            value = _decode_element(doc, index, var_pattern)
        except JsonDecodeError as exc:
            logger.warning(
                "Skipping element %d matched by %r: %s", position, compiled.text, exc,
            )
            result.failures.append(
                ExtractionFailure(index=position, stage=exc.stage, message=exc.reason),
            )
            continue
        if value is MISSING:
            logger.debug("Element %d has no assignment for %r", position, var_pattern)
            continue
        result.values.append(value)
    return result


def extract_json(
    html: Markup | None,
    selector: SelectorList | str,
    var_pattern: str | None = None,
) -> list[Any]:
    """Return the JSON values decoded from the matched elements.

    Failures are logged as warnings and left out; see
    :func:`extract_json_detailed` to inspect them.
    """
    return extract_json_detailed(html, selector, var_pattern).values


# ---------------------------------------------------------------------------
# CLI-style processing
# ---------------------------------------------------------------------------

def _compact_output(value: str) -> str:
    """Compact JSON output; anything that is not JSON is only stripped."""
    stripped = value.strip()
    try:
        parsed = json.loads(stripped, strict=False)
    except json.JSONDecodeError:
        return stripped
    return json.dumps(parsed, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _resolve_base(doc: Document, config: QueryConfig) -> str | None:
    base = detect_base(doc) if config.detect_base else None
    base = base or config.base
    if base and not is_absolute_url(base):
        logger.warning("Ignoring base URL %r: not an absolute URL", base)
        return None
    return base


def _render(doc: Document, index: int, config: QueryConfig, base: str | None,
            skip: set[int]) -> list[str]:
    if config.attributes:
        values = []
        for name in config.attributes:
            value = attribute_value(doc, index, name)
            if value is None:
                continue
            if base and name.lower() in URL_ATTRIBUTES and value.strip():
                value = urljoin(base, value.strip())
            values.append(value)
        return values

    if config.text_only:
        text = text_content(doc, index, ignore_whitespace=config.ignore_whitespace, skip=skip)
        return [_compact_output(text) if config.compact else text]

    markup = outer_html(doc, index, skip=skip, base_url=base, compact=config.compact)
    if config.pretty_print:
        return [pretty_html(markup)]
    return [_compact_output(markup) if config.compact else markup]


def process_html(html: Markup, config: QueryConfig) -> str:
    """Run one CLI invocation and return its output, one result per line.

    Raises:
        SelectorSyntaxError: when the selector or a removal selector does not compile.
    """
    compiled = compile_selector(config.selector)
    removal = compile_selector(", ".join(config.remove_nodes)) if config.remove_nodes else None

    doc = build_document(html)
    base = _resolve_base(doc, config)

    lines: list[str] = []
    for index in select(doc, compiled):
        skip = set(select(doc, removal, scope=index)) if removal else set()
        lines.extend(_render(doc, index, config, base, skip))
    return "".join(f"{line}\n" for line in lines)


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def query_batch(
    rows: Sequence[Markup | None],
    selector: SelectorList | str = settings.DEFAULT_SELECTOR,
    extract: ExtractArg = ExtractMode.HTML,
    *,
    max_workers: int = settings.MAX_WORKERS,
    on_error: str = settings.BATCH_ON_ERROR,
) -> list[list[str] | None]:
    """Run :func:`query_all` over many documents concurrently.

    Results are returned in the same order as *rows*.  The selector is
    compiled once up front, so a syntax error is raised before any work
    starts.

    Args:
        on_error: ``"include"`` keeps ``None`` for a failed row, ``"skip"``
                  leaves it out, ``"raise"`` re-raises the first failure.

    Raises:
        SelectorSyntaxError: when *selector* does not compile.
        ValueError: for an unknown *on_error* value.
    """
    from concurrent.futures import ThreadPoolExecutor, as_completed

    if on_error not in ("skip", "raise", "include"):
        raise ValueError(f"on_error must be 'skip', 'raise', or 'include'; got {on_error!r}")

    compiled = _compiled(selector)
    mode = ExtractMode.coerce(extract)
    results: list[list[str] | None] = [None] * len(rows)
    failed: set[int] = set()

    def _query_one(idx: int, html: Markup | None) -> tuple[int, list[str] | None]:
        try:
            return idx, query_all(html, compiled, mode)
        except Exception as exc:
            if on_error == "raise":
                raise
            logger.warning("query_batch: row %d failed: %s", idx, exc)
            failed.add(idx)
            return idx, None

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_query_one, i, html) for i, html in enumerate(rows)]
        for future in as_completed(futures):
            idx, value = future.result()
            results[idx] = value

    if on_error == "skip":
        return [r for i, r in enumerate(results) if i not in failed]
    return results
