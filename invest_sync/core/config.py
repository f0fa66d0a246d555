"""
Application configuration module.

Loads settings from environment variables (or .env file) using pydantic-settings.
Upstream credentials (API token) come from the environment, never hardcoded.
"""

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from invest_sync.models.user import UserRole

REFRESH_ROLES = tuple(role.value for role in UserRole)


class Settings(BaseSettings):
    """
    Central configuration for the Invest Sync data layer.

    Environment variables are loaded automatically from .env if present.
    All durations are expressed in seconds.
    """

    PROJECT_NAME: str = "Invest Sync Analytics API"
    API_V1_STR: str = "/api/v1"

    # ── Upstream REST API (fetch / mutation collaborator) ──
    UPSTREAM_API_URL: str = "http://localhost:3001/api"
    UPSTREAM_API_TOKEN: Optional[str] = None
    HTTP_TIMEOUT: float = 10.0
    HTTP_MAX_RETRIES: int = 2

    # ── Entity cache ──
    # A collection older than this is re-fetched before use.
    CACHE_MAX_AGE: float = 300.0

    # ── Update propagation ──
    AUTO_REFRESH_ENABLED: bool = True
    AUTO_REFRESH_INTERVAL: float = 30.0
    AUTO_REFRESH_MAX_RETRIES: int = 5
    DEBOUNCE_DELAY: float = 1.0
    CROSS_TAB_KEY: str = "realtime_update"

    # ── Polling context (normally supplied by the auth/session layer) ──
    REFRESH_ROLE: str = "superadmin"
    REFRESH_USER_ID: Optional[str] = None
    REFRESH_SCOPE_ID: Optional[str] = None

    @model_validator(mode="after")
    def _require_scope_for_admin_refresh(self) -> "Settings":
        """Fail fast on a polling context that could never fetch anything.

        An admin without a sub-company scope would silently poll only the
        shared investments collection, and an unknown role polls nothing.
        """
        if self.REFRESH_ROLE not in REFRESH_ROLES:
            raise ValueError(
                f"REFRESH_ROLE must be one of {', '.join(REFRESH_ROLES)} "
                f"(got '{self.REFRESH_ROLE}')"
            )
        if self.REFRESH_ROLE == "admin" and not self.REFRESH_SCOPE_ID:
            raise ValueError(
                "REFRESH_ROLE=admin requires REFRESH_SCOPE_ID (the admin's "
                "sub-company id).\n\n"
                "  export REFRESH_ROLE=admin\n"
                "  export REFRESH_SCOPE_ID=<sub-company-id>"
            )
        if self.REFRESH_ROLE == "investor" and not self.REFRESH_USER_ID:
            raise ValueError("REFRESH_ROLE=investor requires REFRESH_USER_ID")
        return self

    # ── Circuit breaker (upstream API) ──
    CB_FAILURE_THRESHOLD: int = 5
    CB_RECOVERY_TIMEOUT: float = 30.0

    # ── CORS ──
    # Comma-separated list of allowed origins. "*" in dev, restrict in prod.
    CORS_ORIGINS: str = "*"

    # Requests slower than this are logged at WARNING.
    SLOW_REQUEST_MS: float = 500.0

    # ── Logging ──
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_FILE_BACKUP_COUNT: int = 5

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
