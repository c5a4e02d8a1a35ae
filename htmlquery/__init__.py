"""htmlquery - CSS-selector queries over HTML and JSON recovery from <script> tags.

Quick usage::

    from htmlquery import query, query_all

    query(html, "title", "@text")               # "My page"
    query_all(html, "ul.nav > li a", "@href")   # ["/a", "/b", ...]
    query(html, "#main")                        # outer markup of #main

Embedded JSON::

    from htmlquery import extract_json

    extract_json(html, 'script[type="application/ld+json"]')   # LD+JSON blocks
    extract_json(html, "script", "var jobs")                   # var jobs = JSON.parse('...')

Host scalar functions (``None`` in, ``None`` out; errors become warnings)::

    from htmlquery import html_query, html_query_batch

    html_query(row_html, "h1", "@text")
    html_query_batch(column, "a", "@href", max_workers=8)
"""

from htmlquery.errors import HtmlQueryError, JsonDecodeError, SelectorSyntaxError
from htmlquery.extractors.content import ExtractMode
from htmlquery.functions import html_extract_json, html_query, html_query_all, html_query_batch
from htmlquery.items import JsonExtraction, QueryConfig
from htmlquery.query import (
    extract_json,
    extract_json_detailed,
    process_html,
    query,
    query_all,
    query_batch,
)

__version__ = "0.1.0"
__all__ = [
    "ExtractMode",
    "HtmlQueryError",
    "JsonDecodeError",
    "JsonExtraction",
    "QueryConfig",
    "SelectorSyntaxError",
    "extract_json",
    "extract_json_detailed",
    "html_extract_json",
    "html_query",
    "html_query_all",
    "html_query_batch",
    "process_html",
    "query",
    "query_all",
    "query_batch",
]
