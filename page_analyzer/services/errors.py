"""Error taxonomy for the analysis engine.

Errors that concern the *target page* (:class:`UnreachableError`,
:class:`HTTPStatusError`, :class:`ParseError`) and :class:`JobCancelledError`
are fatal to a run.  Probe errors (:class:`ProbeTimeout`,
:class:`ProbeConnectionFailure`) never leave the link validator; they are
turned into broken-link entries instead.
"""

from typing import Optional


class AnalysisError(Exception):
    """Base class for failures that end a run in the ``error`` state."""

    reason = "analysis failed"

    def __str__(self) -> str:
        detail = super().__str__()
        return f"{self.reason} ({detail})" if detail else self.reason


class UnreachableError(AnalysisError):
    reason = "target unreachable"


class HTTPStatusError(AnalysisError):
    reason = "target returned an HTTP error"

    def __init__(self, status_code: int, detail: str = "") -> None:
        super().__init__(detail or f"HTTP {status_code}")
        self.status_code = status_code


class ParseError(AnalysisError):
    reason = "target is not a parseable HTML document"


class JobCancelledError(AnalysisError):
    reason = "cancelled by request"


class InvalidTransitionError(Exception):
    """Raised when a job is moved along an edge missing from the transition table."""


class ProbeError(Exception):
    """A single link probe failed without producing an HTTP status."""

    status_text = "probe failed"

    def __init__(self, url: str, status_code: Optional[int] = None) -> None:
        super().__init__(url)
        self.url = url
        self.status_code = status_code


class ProbeTimeout(ProbeError):
    status_text = "timeout"


class ProbeConnectionFailure(ProbeError):
    status_text = "connection failed"


class ProbeRedirectLimit(ProbeError):
    status_text = "too many redirects"
