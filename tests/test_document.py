"""Tests for page_analyzer.services.document."""

from bs4 import BeautifulSoup

from page_analyzer.services.document import (
    UNKNOWN_VERSION,
    analyze_document,
    count_headings,
    detect_html_version,
    extract_doctype,
    extract_title,
)

_XHTML_10_STRICT = (
    'html PUBLIC "-//W3C//DTD XHTML 1.0 Strict//EN" '
    '"http://www.w3.org/TR/xhtml1/DTD/xhtml1-strict.dtd"'
)


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


# ---------------------------------------------------------------------------
# Doctype → version mapping (pure function)
# ---------------------------------------------------------------------------

class TestDetectHtmlVersion:
    def test_html5(self):
        assert detect_html_version("html") == "HTML5"

    def test_html5_is_case_insensitive(self):
        assert detect_html_version("HTML") == "HTML5"
        assert detect_html_version("  Html ") == "HTML5"

    def test_html5_with_declaration_wrapper(self):
        assert detect_html_version("<!DOCTYPE html>") == "HTML5"

    def test_html5_legacy_compat(self):
        assert detect_html_version('html SYSTEM "about:legacy-compat"') == "HTML5"

    def test_html5_with_empty_public_identifier(self):
        assert detect_html_version('html PUBLIC ""') == "HTML5"

    def test_absent_doctype_is_unknown(self):
        assert detect_html_version(None) == UNKNOWN_VERSION

    def test_xhtml_10_strict(self):
        assert detect_html_version(_XHTML_10_STRICT) == "XHTML 1.0"

    def test_xhtml_10_transitional(self):
        doctype = 'html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN"'
        assert detect_html_version(doctype) == "XHTML 1.0"

    def test_xhtml_11(self):
        doctype = 'html PUBLIC "-//W3C//DTD XHTML 1.1//EN" "http://www.w3.org/TR/xhtml11/DTD/xhtml11.dtd"'
        assert detect_html_version(doctype) == "XHTML 1.1"

    def test_html_401_transitional(self):
        doctype = 'HTML PUBLIC "-//W3C//DTD HTML 4.01 Transitional//EN" "http://www.w3.org/TR/html4/loose.dtd"'
        assert detect_html_version(doctype) == "HTML 4.01"

    def test_html_32(self):
        assert detect_html_version('HTML PUBLIC "-//W3C//DTD HTML 3.2 Final//EN"') == "HTML 3.2"

    def test_other_w3c_html_dtd_maps_to_closest_match(self):
        doctype = 'HTML PUBLIC "-//W3C//DTD HTML Experimental 970324//EN"'
        assert detect_html_version(doctype) == "HTML 4.01"

    def test_unrecognised_doctype_is_unknown(self):
        assert detect_html_version("svg") == UNKNOWN_VERSION
        assert detect_html_version("") == UNKNOWN_VERSION


# ---------------------------------------------------------------------------
# Doctype extraction from a parsed document
# ---------------------------------------------------------------------------

class TestExtractDoctype:
    def test_html5_document(self):
        soup = _soup("<!DOCTYPE html><html><head><title>x</title></head><body></body></html>")
        assert detect_html_version(extract_doctype(soup)) == "HTML5"

    def test_xhtml_document(self):
        soup = _soup(f"<!DOCTYPE {_XHTML_10_STRICT}><html><body><p>x</p></body></html>")
        assert detect_html_version(extract_doctype(soup)) == "XHTML 1.0"

    def test_missing_doctype(self):
        soup = _soup("<html><head><title>x</title></head><body></body></html>")
        assert extract_doctype(soup) is None


# ---------------------------------------------------------------------------
# Title and headings
# ---------------------------------------------------------------------------

class TestExtractTitle:
    def test_first_title_is_used(self):
        soup = _soup("<html><head><title>  Demo  </title></head></html>")
        assert extract_title(soup) == "Demo"

    def test_missing_title_is_empty_string(self):
        assert extract_title(_soup("<html><body><h1>Hi</h1></body></html>")) == ""


class TestCountHeadings:
    def test_counts_every_level(self):
        html = (
            "<body><h1>a</h1><h2>b</h2><h2>c</h2><h3>d</h3>"
            "<h4>e</h4><h5>f</h5><h6>g</h6><h6>h</h6></body>"
        )
        counts = count_headings(_soup(html))
        assert (counts.h1, counts.h2, counts.h3, counts.h4, counts.h5, counts.h6) == (1, 2, 1, 1, 1, 2)
        assert counts.total == 8

    def test_nested_headings_are_counted(self):
        html = "<body><section><article><div><h2>deep</h2></div></article></section><h2>top</h2></body>"
        assert count_headings(_soup(html)).h2 == 2

    def test_zero_headings_is_all_zero(self):
        counts = count_headings(_soup("<body><p>nothing here</p></body>"))
        assert counts.total == 0
        assert counts.model_dump() == {"h1": 0, "h2": 0, "h3": 0, "h4": 0, "h5": 0, "h6": 0}

    def test_many_headings_are_not_truncated(self):
        html = "<body>" + "<h3>x</h3>" * 500 + "</body>"
        assert count_headings(_soup(html)).h3 == 500


class TestAnalyzeDocument:
    def test_returns_all_metadata(self):
        html = "<!DOCTYPE html><html><head><title>Demo</title></head><body><h1>a</h1><h2>b</h2></body></html>"
        title, version, counts = analyze_document(_soup(html))
        assert title == "Demo"
        assert version == "HTML5"
        assert counts.h1 == 1 and counts.h2 == 1 and counts.total == 2
