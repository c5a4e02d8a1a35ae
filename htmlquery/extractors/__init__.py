"""Extraction sub-package: turning matched elements and script text into values."""

from .content import ExtractMode, attribute_value, text_content
from .js_decode import MISSING, decode_script_json, extract_js_variable, parse_embedded_json
from .links import detect_base
from .markup import outer_html, pretty_html

__all__ = [
    "MISSING",
    "ExtractMode",
    "attribute_value",
    "decode_script_json",
    "detect_base",
    "extract_js_variable",
    "outer_html",
    "parse_embedded_json",
    "pretty_html",
    "text_content",
]
