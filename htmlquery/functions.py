"""Scalar functions for embedding htmlquery in a host (SQL engine, dataframe UDF).

These wrap :mod:`htmlquery.query` with host-friendly conventions: a ``None``
input gives a ``None`` / empty result without touching the engine, and a
fatal per-call error (bad selector, bad variable pattern) is logged as a
warning and turned into ``None`` / ``[]`` instead of propagating into the
host process.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from htmlquery import settings
from htmlquery.errors import HtmlQueryError
from htmlquery.query import ExtractArg, Markup, extract_json, query, query_all, query_batch

logger = logging.getLogger(__name__)


def html_query(
    html: Markup | None,
    selector: str | None = settings.DEFAULT_SELECTOR,
    extract: ExtractArg = None,
) -> str | None:
    """First extracted value for *selector* in *html*, or ``None``."""
    if html is None or selector is None:
        return None
    try:
        return query(html, selector, extract)
    except HtmlQueryError as exc:
        logger.warning("html_query(%r) failed: %s", selector, exc)
        return None


def html_query_all(
    html: Markup | None,
    selector: str | None = settings.DEFAULT_SELECTOR,
    extract: ExtractArg = None,
) -> list[str]:
    """Every extracted value for *selector* in *html*, in document order."""
    if html is None or selector is None:
        return []
    try:
        return query_all(html, selector, extract)
    except HtmlQueryError as exc:
        logger.warning("html_query_all(%r) failed: %s", selector, exc)
        return []


def html_extract_json(
    html: Markup | None,
    selector: str | None,
    var_pattern: str | None = None,
) -> list[Any]:
    """JSON values from matched ``<script>`` elements (LD+JSON or JS-variable mode)."""
    if html is None or selector is None:
        return []
    try:
        return extract_json(html, selector, var_pattern)
    except HtmlQueryError as exc:
        logger.warning("html_extract_json(%r, %r) failed: %s", selector, var_pattern, exc)
        return []


def html_query_batch(
    rows: Sequence[Markup | None],
    selector: str | None,
    extract: ExtractArg = None,
    max_workers: int = settings.MAX_WORKERS,
) -> list[list[str] | None]:
    """:func:`html_query_all` over a column of documents, one result per row.

    A selector that does not compile yields ``None`` for every row.
    """
    if selector is None:
        return [None] * len(rows)
    try:
        return query_batch(rows, selector, extract, max_workers=max_workers, on_error="include")
    except HtmlQueryError as exc:
        logger.warning("html_query_batch(%r) failed: %s", selector, exc)
        return [None] * len(rows)
