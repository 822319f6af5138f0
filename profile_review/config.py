"""Runtime settings for the profile review kernel.

Values come from model defaults, overridden by PROFILE_REVIEW_* environment
variables.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PROFILE_REVIEW_",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="profile-review", description="Application name for logging")
    database_path: str = Field(default=":memory:", description="sqlite database file")

    log_level: LogLevel = "INFO"
    log_format: Literal["json", "console"] = "json"
    redact_pii: bool = True

    default_page_limit: int = Field(default=50, ge=1)
    max_page_limit: int = Field(default=200, ge=1)

    nudge_max_questions: int = Field(default=10, ge=0)
    nudge_top_fraction: float = Field(default=0.2, gt=0.0, le=1.0)

    # Header the default session resolver reads the acting RM from
    actor_header: str = "X-RM-Id"

    def clamp_limit(self, limit) -> int:
        """Bound a caller-supplied page size."""
        if limit is None:
            return self.default_page_limit
        return max(1, min(int(limit), self.max_page_limit))
