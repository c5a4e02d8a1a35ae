"""Tests for htmlquery.query - the query orchestrator."""

from __future__ import annotations

import importlib

import pytest

# ``htmlquery.query`` the attribute is the re-exported function; bind the submodule.
query_module = importlib.import_module("htmlquery.query")
from htmlquery.errors import HtmlQueryError, SelectorSyntaxError
from htmlquery.extractors.content import ExtractMode
from htmlquery.items import QueryConfig
from htmlquery.query import (
    extract_json,
    extract_json_detailed,
    process_html,
    query,
    query_all,
    query_batch,
)

# ---------------------------------------------------------------------------
# query() / query_all()
# ---------------------------------------------------------------------------


class TestQuery:
    def test_text_of_title(self, product_html):
        assert query(product_html, "title", "@text") == "Widget Store"

    def test_outer_html_by_default(self, product_html):
        assert query(product_html, "h1") == '<h1 class="title">Widgets</h1>'

    def test_attribute_values_in_document_order(self, product_html):
        assert query_all(product_html, "li.product a", "@href") == [
            "widgets/1",
            "widgets/2",
            "https://other.example.org/3",
        ]

    def test_missing_attributes_skipped(self, product_html):
        assert query_all(product_html, "li a", "@title") == ["First"]

    def test_query_is_first_of_query_all(self, product_html):
        assert query(product_html, "li a", "@title") == "First"
        assert query(product_html, "li a", ExtractMode.TEXT) == "Alpha"

    def test_text_not_trimmed(self, product_html):
        assert query(product_html, "p.note", "@text") == "Prices & availability may change."
        assert query("<p> a </p>", "p", "@text") == " a "

    def test_several_attributes(self, product_html):
        assert query_all(product_html, "li.sale a", ["@href", "@text"]) == [
            '{"href":"widgets/2","text":"Beta"}',
        ]

    def test_default_selector_is_root(self, product_html):
        result = query(product_html)
        assert result.startswith('<html lang="en">')
        assert result.endswith("</html>")

    def test_no_match(self, product_html):
        assert query(product_html, "table") is None
        assert query_all(product_html, "table") == []

    def test_none_html(self):
        assert query(None, "p") is None
        assert query_all(None, "p") == []

    def test_bytes_input(self):
        assert query("<p>caf\xe9</p>".encode(), "p", "@text") == "caf\xe9"

    def test_invalid_selector_raises(self, product_html):
        with pytest.raises(SelectorSyntaxError):
            query(product_html, "div[")

    def test_none_html_skips_selector_compilation(self):
        assert query(None, "div[") is None
        assert query_all(None, "div[") == []


# ---------------------------------------------------------------------------
# extract_json()
# ---------------------------------------------------------------------------

class TestExtractJson:
    LD_JSON = 'script[type="application/ld+json"]'

    def test_ld_json_blocks(self, product_html):
        values = extract_json(product_html, self.LD_JSON)
        assert [v["@type"] for v in values] == ["Product", "BreadcrumbList"]

    def test_ld_json_entities_decoded(self, product_html):
        assert extract_json(product_html, self.LD_JSON)[0]["name"] == "Widget & Co"

    def test_js_variable_literal(self, jobs_html):
        assert extract_json(jobs_html, "script", "var config") == [{"debug": True, "retries": 3}]

    def test_js_variable_json_parse(self, jobs_html):
        assert extract_json(jobs_html, "script", "var jobs") == [
            [{"title": "Engineer", "city": "Montréal", "salary": "50000$ - 80000$"}],
        ]

    def test_pattern_absent_everywhere(self, jobs_html):
        assert extract_json(jobs_html, "script", "var nothing") == []

    def test_failures_reported_per_element(self, jobs_html):
        result = extract_json_detailed(jobs_html, "script", "var broken")
        assert result.matched == 2
        assert result.values == []
        assert len(result.failures) == 1
        assert result.failures[0].index == 1
        assert result.failures[0].stage == "locate"
        assert result.all_failed

    def test_good_elements_survive_bad_ones(self):
        html = (
            '<script type="application/ld+json">{"ok": 1}</script>'
            '<script type="application/ld+json">{oops</script>'
            '<script type="application/ld+json">{"ok": 2}</script>'
        )
        result = extract_json_detailed(html, "script")
        assert result.values == [{"ok": 1}, {"ok": 2}]
        assert [f.index for f in result.failures] == [1]
        assert not result.all_failed

    def test_non_finite_literal_is_a_failure(self):
        result = extract_json_detailed("<script>var n = NaN;</script>", "script", "var n")
        assert result.values == []
        assert len(result.failures) == 1

    def test_failure_logged(self, caplog):
        with caplog.at_level("WARNING", logger="htmlquery.query"):
            extract_json("<script>{oops</script>", "script")
        assert "Skipping element 0" in caplog.text

    def test_blank_pattern_rejected(self, jobs_html):
        with pytest.raises(HtmlQueryError):
            extract_json(jobs_html, "script", "   ")

    def test_none_html(self):
        assert extract_json(None, "script") == []
        assert extract_json(None, "div[", "  ") == []


# ---------------------------------------------------------------------------
# process_html()
# ---------------------------------------------------------------------------

class TestProcessHtml:
    def test_outer_html_one_per_line(self):
        html = '<div class="hi"><a href="/foo/bar">Hello</a></div>'
        assert process_html(html, QueryConfig(selector=".hi")) == (
            '<div class="hi"><a href="/foo/bar">Hello</a></div>\n'
        )

    def test_multiple_matches(self):
        assert process_html("<p>a</p><p>b</p>", QueryConfig(selector="p")) == "<p>a</p>\n<p>b</p>\n"

    def test_no_match_is_empty_output(self):
        assert process_html("<p>a</p>", QueryConfig(selector="table")) == ""

    def test_remove_nodes(self):
        html = '<div id="m"><nav>x</nav><p>keep</p><aside>y</aside></div>'
        config = QueryConfig(selector="#m", remove_nodes=["nav", "aside"])
        assert process_html(html, config) == '<div id="m"><p>keep</p></div>\n'

    def test_remove_nodes_applies_to_text(self):
        html = "<div>keep<script>drop()</script></div>"
        config = QueryConfig(selector="div", text_only=True, remove_nodes=["script"])
        assert process_html(html, config) == "keep\n"

    def test_text_only(self):
        config = QueryConfig(selector="div", text_only=True)
        assert process_html("<div><p>a</p> <p>b</p></div>", config) == "a b\n"

    def test_text_ignore_whitespace(self):
        config = QueryConfig(selector="div", text_only=True, ignore_whitespace=True)
        assert process_html("<div>\n<p>a</p>\n<p>b</p>\n</div>", config) == "a\nb\n\n"

    def test_attributes(self, product_html):
        config = QueryConfig(selector="li.product a", attributes=["href"])
        assert process_html(product_html, config) == (
            "widgets/1\nwidgets/2\nhttps://other.example.org/3\n"
        )

    def test_attributes_resolved_with_detected_base(self, product_html):
        config = QueryConfig(selector="li.product a", attributes=["href"], detect_base=True)
        assert process_html(product_html, config) == (
            "https://shop.example.com/catalog/widgets/1\n"
            "https://shop.example.com/catalog/widgets/2\n"
            "https://other.example.org/3\n"
        )

    def test_detected_base_wins_over_given_base(self, product_html):
        config = QueryConfig(
            selector="li.sale a", attributes=["href"], detect_base=True, base="https://x.org/",
        )
        assert process_html(product_html, config) == "https://shop.example.com/catalog/widgets/2\n"

    def test_given_base_used_when_none_detected(self):
        config = QueryConfig(selector="a", detect_base=True, base="https://e.com/")
        assert process_html('<a href="/x">t</a>', config) == '<a href="https://e.com/x">t</a>\n'

    def test_relative_base_ignored(self):
        config = QueryConfig(selector="a", base="/relative/")
        assert process_html('<a href="x">t</a>', config) == '<a href="x">t</a>\n'

    def test_pretty(self):
        config = QueryConfig(selector="div", pretty_print=True)
        assert process_html("<div><p>x</p></div>", config) == "<div>\n <p>\n  x\n </p>\n</div>\n"

    def test_compact_markup(self):
        config = QueryConfig(selector="ul", compact=True)
        assert process_html("<ul>\n  <li>a</li>\n</ul>", config) == "<ul><li>a</li></ul>\n"

    def test_compact_json_text(self):
        html = '<script type="application/ld+json">{ "b": 1,\n  "a": [1, 2] }</script>'
        config = QueryConfig(selector="script", text_only=True, compact=True)
        assert process_html(html, config) == '{"a":[1,2],"b":1}\n'

    def test_compact_escapes_control_characters(self):
        html = '<script>{"a": "line\nbreak"}</script>'
        config = QueryConfig(selector="script", text_only=True, compact=True)
        assert process_html(html, config) == '{"a":"line\\nbreak"}\n'

    def test_invalid_removal_selector_raises(self):
        with pytest.raises(SelectorSyntaxError):
            process_html("<p>x</p>", QueryConfig(selector="p", remove_nodes=["a["]))

    def test_empty_selector_raises(self):
        with pytest.raises(SelectorSyntaxError):
            process_html("<p>x</p>", QueryConfig(selector="  "))


# ---------------------------------------------------------------------------
# query_batch()
# ---------------------------------------------------------------------------

class TestQueryBatch:
    ROWS = ["<p>1</p>", None, "<p>2</p><p>3</p>", "<div></div>"]

    def test_results_in_input_order(self):
        assert query_batch(self.ROWS, "p", "@text", max_workers=3) == [["1"], [], ["2", "3"], []]

    def test_invalid_selector_raises_before_work(self):
        with pytest.raises(SelectorSyntaxError):
            query_batch(self.ROWS, "p[")

    def test_invalid_on_error(self):
        with pytest.raises(ValueError):
            query_batch(self.ROWS, "p", on_error="ignore")

    def _failing_query_all(self, monkeypatch):
        real = query_module.query_all

        def fake(html, selector, extract):
            if html == "<p>2</p><p>3</p>":
                raise RuntimeError("boom")
            return real(html, selector, extract)

        monkeypatch.setattr(query_module, "query_all", fake)

    def test_on_error_include(self, monkeypatch):
        self._failing_query_all(monkeypatch)
        assert query_batch(self.ROWS, "p", "@text") == [["1"], [], None, []]

    def test_on_error_skip(self, monkeypatch):
        self._failing_query_all(monkeypatch)
        assert query_batch(self.ROWS, "p", "@text", on_error="skip") == [["1"], [], []]

    def test_on_error_raise(self, monkeypatch):
        self._failing_query_all(monkeypatch)
        with pytest.raises(RuntimeError, match="boom"):
            query_batch(self.ROWS, "p", "@text", on_error="raise")
