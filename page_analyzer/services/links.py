"""Anchor enumeration and internal/external classification."""

import logging
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from page_analyzer.models.report import ClassifiedLink

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = ("http", "https")


def _hostname(url: str) -> Optional[str]:
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def _strip_fragment(url: str) -> str:
    """Strip URL fragment so http://x.com/page#sec and http://x.com/page are the same."""
    return urlparse(url)._replace(fragment="").geturl()


def _resolution_base(soup: BeautifulSoup, base_url: str) -> str:
    """Return the URL relative hrefs resolve against, honouring ``<base href>``."""
    base_tag = soup.find("base", href=True)
    if base_tag:
        href = str(base_tag["href"]).strip()
        if href:
            try:
                return urljoin(base_url, href)
            except ValueError:
                logger.debug("LinkClassifier: ignoring malformed <base href=%r>", href)
    return base_url


def _resolve(resolution_base: str, href: str) -> Optional[str]:
    """Resolve *href* to an absolute http(s) URL without fragment, or None to skip it."""
    if href.startswith("#"):
        return None
    try:
        parsed = urlparse(urljoin(resolution_base, href))
        if parsed.scheme not in _ALLOWED_SCHEMES or not parsed.hostname:
            return None
    except ValueError:
        logger.debug("LinkClassifier: skipping malformed href %r", href)
        return None
    return parsed._replace(fragment="").geturl()


def classify_links(soup: BeautifulSoup, base_url: str) -> List[ClassifiedLink]:
    """Return the unique http(s) links of *soup* in document order.

    A link is internal when its hostname equals the hostname of *base_url*
    (case-insensitive, no subdomain folding).  Duplicates are collapsed on the
    resolved absolute URL, so the list length is the number of unique links.
    """
    base_host = _hostname(base_url)
    resolution_base = _resolution_base(soup, _strip_fragment(base_url))

    seen: set = set()
    links: List[ClassifiedLink] = []
    for a in soup.find_all("a", href=True):
        href = str(a["href"]).strip()
        if not href:
            continue
        abs_url = _resolve(resolution_base, href)
        if abs_url is None or abs_url in seen:
            continue
        seen.add(abs_url)
        links.append(ClassifiedLink(abs_url, _hostname(abs_url) == base_host))
    return links


def partition_links(
    links: List[ClassifiedLink],
) -> Tuple[List[ClassifiedLink], List[ClassifiedLink]]:
    """Split *links* into ``(internal, external)`` lists."""
    internal = [link for link in links if link.is_internal]
    external = [link for link in links if not link.is_internal]
    return internal, external
