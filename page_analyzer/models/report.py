from typing import Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClassifiedLink(NamedTuple):
    absolute_url: str
    is_internal: bool


class HeadingCounts(BaseModel):
    """Number of ``<h1>`` … ``<h6>`` elements found in a document."""

    model_config = ConfigDict(frozen=True)

    h1: int = Field(default=0, ge=0)
    h2: int = Field(default=0, ge=0)
    h3: int = Field(default=0, ge=0)
    h4: int = Field(default=0, ge=0)
    h5: int = Field(default=0, ge=0)
    h6: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.h1 + self.h2 + self.h3 + self.h4 + self.h5 + self.h6

    @classmethod
    def from_levels(cls, counts: Dict[int, int]) -> "HeadingCounts":
        """Build from a ``{level: count}`` mapping; missing levels count as zero."""
        return cls(**{f"h{level}": counts.get(level, 0) for level in range(1, 7)})


class BrokenLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    status_code: Optional[int] = None
    """Final HTTP status, or ``None`` when the probe timed out or could not connect."""
    status_text: str = ""


class PageReport(BaseModel):
    """Aggregated result of one successful analysis run."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str
    html_version: str
    heading_counts: HeadingCounts
    internal_link_count: int = Field(ge=0)
    external_link_count: int = Field(ge=0)
    has_login_form: bool
    broken_links: List[BrokenLink] = Field(default_factory=list)
    inaccessible_link_count: int = Field(default=0, ge=0)
    unchecked_link_count: int = Field(default=0, ge=0)
