import asyncio
import ipaddress
import logging
import socket
from typing import NamedTuple
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from page_analyzer.config import EngineSettings
from page_analyzer.services.errors import HTTPStatusError, ParseError, UnreachableError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https"}

# Content types accepted as HTML; a missing header is given the benefit of the doubt
_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class FetchedDocument(NamedTuple):
    url: str  # effective URL after redirects
    status_code: int
    soup: BeautifulSoup


async def _resolves_to_private_address(hostname: str) -> bool:
    """Return True if any address *hostname* resolves to is private, loopback, link-local or reserved.

    The lookup runs in the event loop's default executor.
    """
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    addresses = {info[4][0].split("%")[0] for info in infos}  # drop IPv6 zone ids
    for raw_ip in addresses:
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


async def validate_url(url: str, block_private: bool = True) -> None:
    """Raise UnreachableError unless *url* is an http(s) URL the engine may request."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as exc:
        raise UnreachableError(f"malformed URL: {exc}") from exc

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise UnreachableError(f"scheme '{parsed.scheme}' is not allowed, use http or https")

    if not hostname:
        raise UnreachableError("URL must have a valid hostname")

    if block_private and await _resolves_to_private_address(hostname):
        raise UnreachableError("requests to private/internal addresses are not allowed")


def parse_html(body: bytes, content_type: str = "") -> BeautifulSoup:
    """Parse *body* as HTML, raising ParseError for anything that is not a document."""
    media_type = content_type.split(";")[0].strip().lower()
    if media_type and media_type not in _HTML_CONTENT_TYPES:
        raise ParseError(f"unexpected content type '{media_type}'")
    if not body.strip():
        raise ParseError("empty response body")

    try:
        soup = BeautifulSoup(body, "lxml")
    except Exception as exc:  # lxml / bs4 raise a variety of parser errors
        raise ParseError(str(exc)) from exc

    if soup.find() is None:
        raise ParseError("no HTML elements found")
    return soup


async def fetch_document(
    client: httpx.AsyncClient,
    url: str,
    settings: EngineSettings,
) -> FetchedDocument:
    """Fetch *url* and return the parsed page together with its effective URL.

    Redirects are followed manually so that every redirect destination is
    validated before the next request is made.  No retries are attempted.

    Raises:
        UnreachableError: on network errors, timeouts, refused URLs or too many redirects.
        HTTPStatusError: when the final response status is >= 400.
        ParseError: when the body is not an HTML document or exceeds the size limit.
    """
    current_url = url
    try:
        for _ in range(settings.max_redirects + 1):
            await validate_url(current_url, settings.block_private_addresses)
            async with client.stream(
                "GET",
                current_url,
                follow_redirects=False,
                timeout=httpx.Timeout(settings.fetch_timeout, pool=None),
            ) as response:
                if response.is_redirect:
                    location = response.headers.get("location", "")
                    next_url = urljoin(current_url, location)
                    logger.debug("Fetcher: %s redirected to %s", current_url, next_url)
                    current_url = next_url
                    continue

                if response.status_code >= 400:
                    raise HTTPStatusError(response.status_code)

                content_length = response.headers.get("content-length")
                if content_length and content_length.isdigit() and int(content_length) > settings.max_content_size:
                    raise ParseError("response body exceeds the maximum allowed size")

                chunks = []
                total = 0
                async for chunk in response.aiter_bytes():
                    total += len(chunk)
                    if total > settings.max_content_size:
                        raise ParseError("response body exceeds the maximum allowed size")
                    chunks.append(chunk)

                soup = parse_html(b"".join(chunks), response.headers.get("content-type", ""))
                return FetchedDocument(url=current_url, status_code=response.status_code, soup=soup)
    except httpx.TimeoutException as exc:
        raise UnreachableError(f"timed out after {settings.fetch_timeout:g}s") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise UnreachableError(type(exc).__name__) from exc

    raise UnreachableError(f"more than {settings.max_redirects} redirects")
