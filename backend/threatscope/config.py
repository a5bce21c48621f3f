"""
ThreatScope application configuration.

Loads settings from environment variables with sensible defaults for local
development.  Uses Pydantic BaseSettings so every value can be overridden via
an environment variable or a ``.env`` file placed next to the backend root.

Credentials for upstream services are never shipped with defaults; they are
expected to be injected from the environment or a secret store.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the ThreatScope backend.

    All attributes can be overridden through environment variables of the same
    name (case-insensitive).  For example, set ``MONITOR_INTERVAL_SECONDS`` in
    the shell or in a ``.env`` file to change the polling cadence.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ─────────────────────────────────────────────────────────
    APP_NAME: str = "ThreatScope"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # ── Database (incident persistence) ─────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./threatscope.db"

    # ── CORS ────────────────────────────────────────────────────────────────
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # ── Scan pipeline ───────────────────────────────────────────────────────
    REACHABILITY_TIMEOUT: float = 5.0
    FINGERPRINT_TIMEOUT: float = 2.0
    FINGERPRINT_CONCURRENCY: int = 10
    HEADER_CHECK_TIMEOUT: float = 5.0

    PORT_DB_URL: str = "https://internetdb.shodan.io"
    PORT_DB_TIMEOUT: float = 10.0

    SSL_LABS_API_URL: str = "https://api.ssllabs.com/api/v3/analyze"
    SSL_LABS_TIMEOUT: float = 30.0
    SSL_LABS_POLL_INTERVAL: float = 10.0
    SSL_LABS_MAX_POLLS: int = 30

    NVD_API_URL: str = "https://services.nvd.nist.gov/rest/json/cves/2.0"
    NVD_TIMEOUT: float = 30.0

    # ── Monitoring ──────────────────────────────────────────────────────────
    ALERT_API_URL: str = "http://localhost:3000/api"
    ALERT_API_TIMEOUT: float = 10.0
    MONITOR_INTERVAL_SECONDS: float = 10.0
    MONITOR_SOURCES: list[str] = ["siem", "ids", "edr"]
    THREAT_HISTORY_SIZE: int = 10
    DEDUP_WINDOW: int = 500
    INCIDENT_HISTORY_SIZE: int = 500
    REPORT_HISTORY_SIZE: int = 100
    ESCALATION_CONFIDENCE: float = 0.9
    AUTO_BLOCK_ENABLED: bool = False

    ENRICHMENT_API_URL: str = "http://localhost:3000/api"
    ENRICHMENT_TIMEOUT: float = 10.0

    # ── External API Keys (optional, injected) ──────────────────────────────
    NVD_API_KEY: Optional[str] = None
    ALERT_API_TOKEN: Optional[str] = None
    ENRICHMENT_API_KEY: Optional[str] = None

    # ── Validators ──────────────────────────────────────────────────────────

    @field_validator("CORS_ORIGINS", "MONITOR_SOURCES", mode="before")
    @classmethod
    def parse_csv_list(cls, value: object) -> list[str]:
        """Accept a comma-separated string *or* an actual list."""
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return list(value)  # type: ignore[arg-type]

    @field_validator("ESCALATION_CONFIDENCE", mode="after")
    @classmethod
    def check_confidence_range(cls, value: float) -> float:
        """Keep the escalation threshold inside the oracle's [0, 1] range."""
        if not 0.0 <= value <= 1.0:
            raise ValueError("ESCALATION_CONFIDENCE must be between 0 and 1.")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings.

    Using ``lru_cache`` ensures the ``.env`` file is read only once and the
    same ``Settings`` instance is reused across the entire process.
    """
    return Settings()
