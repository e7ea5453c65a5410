"""Structural metadata of a parsed page: title, HTML version and headings.

HTML version detection is a pure mapping from doctype text to a label so it
can be tested without a network or a DOM:

``None``
    No doctype declaration at all → ``"Unknown"``.

``html``
    The HTML5 doctype (optionally with an empty public identifier or the
    ``about:legacy-compat`` system identifier) → ``"HTML5"``.

``html PUBLIC "-//W3C//DTD …"``
    Legacy public identifiers are matched against the known DTD names.  Other
    W3C HTML DTDs fall back to ``"HTML 4.01"``; anything else is ``"Unknown"``.
"""

import re
from typing import Optional, Tuple

from bs4 import BeautifulSoup, Doctype

from page_analyzer.models.report import HeadingCounts

UNKNOWN_VERSION = "Unknown"

_HTML5_DOCTYPE = re.compile(
    r"""^html(?:\s+(?:public|system)(?:\s+(?:""|''))*)?"""
    r"""(?:\s+system\s+["']about:legacy-compat["'])?$""",
    re.IGNORECASE,
)

# Checked in order: more specific identifiers must come first
_KNOWN_DTDS = (
    ("XHTML 1.1", "XHTML 1.1"),
    ("XHTML 1.0", "XHTML 1.0"),
    ("XHTML BASIC", "XHTML Basic"),
    ("HTML 4.01", "HTML 4.01"),
    ("HTML 4.0", "HTML 4.0"),
    ("HTML 3.2", "HTML 3.2"),
    ("HTML 2.0", "HTML 2.0"),
)

_LEGACY_HTML_DTD = re.compile(r"-//W3C//DTD\s+HTML", re.IGNORECASE)

_HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")


def detect_html_version(doctype: Optional[str]) -> str:
    """Map the text of a doctype declaration to an HTML version label."""
    if doctype is None:
        return UNKNOWN_VERSION

    normalised = " ".join(doctype.split())
    # Accept the declaration with or without its "<!DOCTYPE" wrapper
    normalised = re.sub(r"^<!doctype\s+", "", normalised, flags=re.IGNORECASE).rstrip(">").strip()

    if _HTML5_DOCTYPE.match(normalised):
        return "HTML5"

    upper = normalised.upper()
    for marker, label in _KNOWN_DTDS:
        if marker in upper:
            return label

    if _LEGACY_HTML_DTD.search(normalised):
        return "HTML 4.01"
    return UNKNOWN_VERSION


def extract_doctype(soup: BeautifulSoup) -> Optional[str]:
    """Return the doctype declaration text of *soup*, or None if it has none."""
    for node in soup.contents:
        if isinstance(node, Doctype):
            return str(node)
    return None


def extract_title(soup: BeautifulSoup) -> str:
    title_tag = soup.find("title")
    if title_tag:
        return title_tag.get_text(strip=True)
    return ""


def count_headings(soup: BeautifulSoup) -> HeadingCounts:
    counts = {
        level: len(soup.find_all(tag))
        for level, tag in enumerate(_HEADING_TAGS, start=1)
    }
    return HeadingCounts.from_levels(counts)


def analyze_document(soup: BeautifulSoup) -> Tuple[str, str, HeadingCounts]:
    """Extract structural metadata from a parsed page.

    Returns:
        (title, html_version, heading_counts)
    """
    return extract_title(soup), detect_html_version(extract_doctype(soup)), count_headings(soup)
