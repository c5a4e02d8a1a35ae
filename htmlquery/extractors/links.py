"""Base-URL detection and relative link rewriting for serialised markup."""

from __future__ import annotations

import logging
from urllib.parse import urljoin, urlparse

from htmlquery.document import Document, Element

logger = logging.getLogger(__name__)

# Attributes whose values are URLs, on any element.
URL_ATTRIBUTES: tuple[str, ...] = ("href", "src", "action", "poster", "cite")


def is_absolute_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme) and bool(parsed.netloc)


def detect_base(doc: Document) -> str | None:
    """Return the absolute ``href`` of the first ``<base>`` element, if any."""
    index = doc.first_element("base")
    if index is None:
        return None
    href = doc.element(index).attrs.get("href", "").strip()
    if not href or not is_absolute_url(href):
        logger.debug("Ignoring unusable <base href=%r>", href)
        return None
    return href


def rewrite_attributes(element: Element, base_url: str) -> dict[str, str] | None:
    """Return *element*'s attributes with URL values resolved against *base_url*.

    Returns ``None`` when nothing would change, so callers can keep the
    element's original start-tag text.
    """
    changed = False
    rewritten: dict[str, str] = {}
    for name, value in element.attrs.items():
        if name in URL_ATTRIBUTES and value.strip():
            resolved = urljoin(base_url, value.strip())
            if resolved != value:
                changed = True
                value = resolved
        rewritten[name] = value
    return rewritten if changed else None
