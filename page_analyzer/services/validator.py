"""Concurrent reachability checks for the links found on a page.

Links are pushed onto an :class:`asyncio.Queue` that is drained by a fixed
number of worker tasks, so the number of outstanding probes never exceeds the
concurrency limit no matter how many links a page contains.

Every probe is independent.  A timeout, a refused connection or an HTTP status
>= 400 marks that one link as broken; it never aborts the remaining probes.
When the global validation deadline expires, probes that have not settled are
abandoned and their links are reported as *unchecked* rather than broken.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional
from urllib.parse import urljoin

import httpx

from page_analyzer.config import EngineSettings
from page_analyzer.models.report import BrokenLink, ClassifiedLink
from page_analyzer.services.errors import (
    ProbeConnectionFailure,
    ProbeError,
    ProbeRedirectLimit,
    ProbeTimeout,
)

logger = logging.getLogger(__name__)

# Statuses meaning "this server does not do HEAD"; the probe is retried with GET
_HEAD_REJECTED = {405, 501}


class ValidationResult(NamedTuple):
    broken: List[BrokenLink]
    checked: int
    unchecked: int


async def _final_status(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    settings: EngineSettings,
) -> int:
    """Return the status at the end of the redirect chain starting at *url*.

    The response body is never read.  Time spent waiting for a pooled
    connection does not count against the probe timeout; the global
    validation deadline still bounds it.
    """
    current_url = url
    status = 0
    try:
        for _ in range(settings.probe_max_redirects + 1):
            async with client.stream(
                method,
                current_url,
                follow_redirects=False,
                timeout=httpx.Timeout(settings.probe_timeout, pool=None),
            ) as response:
                status = response.status_code
                if not response.is_redirect:
                    return status
                current_url = urljoin(current_url, response.headers.get("location", ""))
    except httpx.TimeoutException as exc:
        raise ProbeTimeout(url) from exc
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        raise ProbeConnectionFailure(url) from exc

    raise ProbeRedirectLimit(url, status)


async def probe_link(
    client: httpx.AsyncClient,
    url: str,
    settings: EngineSettings,
) -> Optional[BrokenLink]:
    """Probe *url* and return a :class:`BrokenLink`, or None when it is reachable."""
    try:
        status = await _final_status(client, "HEAD", url, settings)
        if status in _HEAD_REJECTED:
            logger.debug("LinkValidator: HEAD rejected by %s (%d), retrying with GET", url, status)
            status = await _final_status(client, "GET", url, settings)
    except ProbeError as exc:
        logger.debug("LinkValidator: %s – %s", url, exc.status_text)
        return BrokenLink(url=url, status_code=exc.status_code, status_text=exc.status_text)

    if status >= 400:
        return BrokenLink(
            url=url,
            status_code=status,
            status_text=httpx.codes.get_reason_phrase(status),
        )
    return None


async def validate_links(
    client: httpx.AsyncClient,
    links: Iterable[ClassifiedLink],
    settings: EngineSettings,
    concurrency_limit: Optional[int] = None,
) -> ValidationResult:
    """Probe every unique link with at most *concurrency_limit* probes in flight.

    Args:
        client:             Shared HTTP client owned by the engine.
        links:              Links to check; duplicates are probed once.
        settings:           Probe timeout, redirect bound and global deadline.
        concurrency_limit:  Worker count; defaults to ``settings.probe_concurrency``.

    Raises:
        ValueError: when *concurrency_limit* is below 1.

    Returns:
        A :class:`ValidationResult` with the broken links sorted by URL, the
        number of links that settled, and the number still pending when the
        deadline expired.
    """
    limit = settings.probe_concurrency if concurrency_limit is None else concurrency_limit
    if limit < 1:
        raise ValueError(f"concurrency_limit must be at least 1, got {limit}")

    urls = list(dict.fromkeys(link.absolute_url for link in links))
    if not urls:
        return ValidationResult(broken=[], checked=0, unchecked=0)

    queue: asyncio.Queue = asyncio.Queue()
    for url in urls:
        queue.put_nowait(url)

    outcomes: Dict[str, Optional[BrokenLink]] = {}

    async def worker() -> None:
        while True:
            try:
                url = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                outcomes[url] = await probe_link(client, url, settings)
            except Exception:
                # Left undetermined so one faulty probe cannot stop the pool
                logger.exception("LinkValidator: unexpected error probing %s", url)

    workers = [asyncio.create_task(worker()) for _ in range(min(limit, len(urls)))]
    try:
        _done, pending = await asyncio.wait(workers, timeout=settings.validation_deadline)
    finally:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    if pending:
        logger.warning(
            "LinkValidator: deadline of %.1fs reached with %d link(s) unchecked",
            settings.validation_deadline,
            len(urls) - len(outcomes),
        )

    broken = sorted(
        (outcome for outcome in outcomes.values() if outcome is not None),
        key=lambda link: link.url,
    )
    return ValidationResult(
        broken=broken,
        checked=len(outcomes),
        unchecked=len(urls) - len(outcomes),
    )
