"""Tests for htmlquery.extractors - markup, text, attributes and links."""

from __future__ import annotations

import json

from htmlquery.document import build_document
from htmlquery.extractors.content import (
    ExtractKind,
    ExtractMode,
    attribute_value,
    decode_entities,
    extract,
    raw_text,
    text_content,
)
from htmlquery.extractors.links import detect_base, is_absolute_url, rewrite_attributes
from htmlquery.extractors.markup import outer_html, pretty_html
from htmlquery.matcher import select, select_first


def _outer(html, selector, **kwargs):
    doc = build_document(html)
    return outer_html(doc, select_first(doc, selector), **kwargs)


# ---------------------------------------------------------------------------
# outer_html
# ---------------------------------------------------------------------------

class TestOuterHtml:
    def test_round_trips_source_markup(self):
        html = '<div class="hi"><a href="/foo/bar">Hello</a></div>'
        assert _outer(html, ".hi") == html

    def test_entities_kept_as_written(self):
        html = "<p>Tom &amp; Jerry &copy;</p>"
        assert _outer(html, "p") == html

    def test_void_element_has_no_end_tag(self):
        assert _outer("<p>a<br>b</p>", "p") == "<p>a<br>b</p>"

    def test_self_closing_void_keeps_source(self):
        assert _outer("<p>a<br/>b</p>", "p") == "<p>a<br/>b</p>"

    def test_self_closing_non_void_gets_end_tag(self):
        assert _outer("<div><span/></div>", "div") == "<div><span></span></div>"

    def test_unclosed_element_gets_end_tag(self):
        assert _outer("<ul><li>one<li>two</ul>", "ul") == "<ul><li>one</li><li>two</li></ul>"

    def test_comments_serialised(self):
        assert _outer("<div><!-- c -->x</div>", "div") == "<div><!-- c -->x</div>"

    def test_skip_removes_subtrees(self):
        doc = build_document('<div id="m"><nav>x</nav><p>keep</p></div>')
        main = select_first(doc, "#m")
        skip = set(select(doc, "nav", scope=main))
        assert outer_html(doc, main, skip=skip) == '<div id="m"><p>keep</p></div>'

    def test_compact_drops_whitespace_text(self):
        html = "<ul>\n  <li>a b</li>\n  <li>c</li>\n</ul>"
        assert _outer(html, "ul", compact=True) == "<ul><li>a b</li><li>c</li></ul>"

    def test_base_url_rewrites_relative_links(self):
        html = '<div><a href="x/y" class="l">t</a><img src="/i.png"></div>'
        result = _outer(html, "div", base_url="https://e.com/a/")
        assert result == (
            '<div><a href="https://e.com/a/x/y" class="l">t</a>'
            '<img src="https://e.com/i.png"></div>'
        )

    def test_base_url_keeps_absolute_links_verbatim(self):
        html = "<a href='https://other.org/'>t</a>"
        assert _outer(html, "a", base_url="https://e.com/") == html

    def test_document_node_includes_doctype(self):
        doc = build_document("<!DOCTYPE html><p>x</p>")
        assert outer_html(doc, doc.root) == "<!DOCTYPE html><p>x</p>"


class TestPrettyHtml:
    def test_indents_nested_elements(self):
        assert pretty_html("<div><p>x</p></div>") == "<div>\n <p>\n  x\n </p>\n</div>"


# ---------------------------------------------------------------------------
# Text and attributes
# ---------------------------------------------------------------------------

class TestText:
    def test_descendant_text_concatenated(self):
        doc = build_document("<p>a <b>bold</b> c</p>")
        assert text_content(doc, select_first(doc, "p")) == "a bold c"

    def test_entities_decoded(self):
        doc = build_document("<p>a &amp; b &#233; &#x41; &nbsp;</p>")
        assert text_content(doc, select_first(doc, "p")) == "a & b é A \xa0"

    def test_ignore_whitespace(self):
        doc = build_document("<div>\n <p>a</p>\n <p>b</p>\n</div>")
        result = text_content(doc, select_first(doc, "div"), ignore_whitespace=True)
        assert result == "a\nb\n"

    def test_skip(self):
        doc = build_document("<div>keep<span>drop</span></div>")
        div = select_first(doc, "div")
        assert text_content(doc, div, skip={select_first(doc, "span")}) == "keep"

    def test_comments_excluded(self):
        doc = build_document("<p>a<!-- hidden -->b</p>")
        assert text_content(doc, select_first(doc, "p")) == "ab"

    def test_raw_text_keeps_entities(self):
        doc = build_document("<script>var a = '&amp;';</script>")
        assert raw_text(doc, select_first(doc, "script")) == "var a = '&amp;';"

    def test_decode_entities_passthrough(self):
        assert decode_entities("no refs") == "no refs"

    def test_attribute_value(self):
        doc = build_document('<a href="/x" data-id="7">t</a>')
        a = select_first(doc, "a")
        assert attribute_value(doc, a, "href") == "/x"
        assert attribute_value(doc, a, "DATA-ID") == "7"
        assert attribute_value(doc, a, "title") is None


# ---------------------------------------------------------------------------
# ExtractMode
# ---------------------------------------------------------------------------

class TestExtractMode:
    def test_from_attr(self):
        assert ExtractMode.from_attr(None) == ExtractMode.HTML
        assert ExtractMode.from_attr("") == ExtractMode.HTML
        assert ExtractMode.from_attr("@text") == ExtractMode.TEXT
        assert ExtractMode.from_attr("text") == ExtractMode.TEXT
        assert ExtractMode.from_attr("@href") == ExtractMode.attribute("href")
        assert ExtractMode.from_attr("src") == ExtractMode.attribute("src")

    def test_from_attr_list(self):
        assert ExtractMode.from_attr_list([]) == ExtractMode.HTML
        assert ExtractMode.from_attr_list(["@href"]) == ExtractMode.attribute("href")
        mode = ExtractMode.from_attr_list(["@href", "@text", "title"])
        assert mode.kind is ExtractKind.ATTRIBUTES
        assert mode.names == ("href", "@text", "title")

    def test_coerce(self):
        assert ExtractMode.coerce(ExtractMode.TEXT) is ExtractMode.TEXT
        assert ExtractMode.coerce("@text") == ExtractMode.TEXT
        assert ExtractMode.coerce(["@a", "@b"]) == ExtractMode.attributes(["a", "b"])

    def test_extract_each_mode(self):
        doc = build_document('<a href="/x" title="T">Hi &amp; bye</a>')
        a = select_first(doc, "a")
        assert extract(doc, a, ExtractMode.HTML) == '<a href="/x" title="T">Hi &amp; bye</a>'
        assert extract(doc, a, ExtractMode.TEXT) == "Hi & bye"
        assert extract(doc, a, ExtractMode.attribute("href")) == "/x"
        assert extract(doc, a, ExtractMode.attribute("rel")) is None

    def test_extract_several_attributes_as_json(self):
        doc = build_document('<a href="/x">  Caf&eacute; </a>')
        mode = ExtractMode.from_attr_list(["@href", "@text", "@rel"])
        result = extract(doc, select_first(doc, "a"), mode)
        assert json.loads(result) == {"href": "/x", "text": "Café", "rel": ""}
        assert result == '{"href":"/x","text":"Café","rel":""}'


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

class TestLinks:
    def test_is_absolute_url(self):
        assert is_absolute_url("https://e.com/x")
        assert not is_absolute_url("/x")
        assert not is_absolute_url("x/y")

    def test_detect_base(self, product_html):
        assert detect_base(build_document(product_html)) == "https://shop.example.com/catalog/"

    def test_detect_base_ignores_relative_href(self):
        assert detect_base(build_document('<base href="/root/">')) is None

    def test_detect_base_absent(self):
        assert detect_base(build_document("<p>x</p>")) is None

    def test_rewrite_attributes_unchanged_returns_none(self):
        doc = build_document('<a href="https://e.com/">t</a>')
        element = doc.element(select_first(doc, "a"))
        assert rewrite_attributes(element, "https://e.com/") is None

    def test_rewrite_attributes_resolves(self):
        doc = build_document('<form action="send" class="f"></form>')
        element = doc.element(select_first(doc, "form"))
        assert rewrite_attributes(element, "https://e.com/a/b") == {
            "action": "https://e.com/a/send",
            "class": "f",
        }
