from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Runtime limits for one analysis engine instance.

    Every value can be overridden with a ``PAGE_ANALYZER_``-prefixed
    environment variable or a ``.env`` file in the project root.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAGE_ANALYZER_",
        env_file=str(Path(__file__).parent.parent / ".env"),
        extra="ignore",
    )

    # ── Page fetch ──────────────────────────────
    fetch_timeout: float = Field(default=10.0, gt=0)  # seconds
    max_redirects: int = Field(default=10, ge=0)
    max_content_size: int = Field(default=10 * 1024 * 1024, gt=0)  # 10 MB
    block_private_addresses: bool = True
    user_agent: str = "Mozilla/5.0 (compatible; PageAnalyzer/1.0)"

    # ── Logging ─────────────────────────────────
    log_level: str = "INFO"

    # ── Link probes ─────────────────────────────
    probe_timeout: float = Field(default=5.0, gt=0)  # seconds
    probe_max_redirects: int = Field(default=5, ge=0)
    probe_concurrency: int = Field(default=10, ge=1, le=100)
    validation_deadline: float = Field(default=60.0, gt=0)  # seconds


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()
