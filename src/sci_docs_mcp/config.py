"""Centralized configuration for sci-docs-mcp using Pydantic Settings."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sci_docs_mcp.domain.search import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT


class Settings(BaseSettings):
    """Strictly typed engine configuration loaded from environment variables.

    Values are validated at startup; an invalid combination fails fast
    instead of surfacing on the first query.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",  # Ignore extra env vars not defined in model
    )

    # Cache settings
    cache_ttl_seconds: int = Field(
        default=3600, ge=1, description="Seconds a corpus generation stays fresh before a rebuild is scheduled"
    )
    max_concurrent_rebuilds: int = Field(
        default=2, ge=1, description="Maximum corpus builds running in worker threads at once"
    )

    # Query settings
    default_query_limit: int = Field(
        default=DEFAULT_QUERY_LIMIT, ge=1, description="Result limit applied when a caller gives none"
    )
    max_query_limit: int = Field(
        default=MAX_QUERY_LIMIT,
        ge=1,
        le=MAX_QUERY_LIMIT,
        description="Largest limit a query may request",
    )
    enable_fuzzy: bool = Field(
        default=True, description="Fall back to the closest indexed term for keyword tokens with no postings"
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    @model_validator(mode="after")
    def _check_query_limits(self) -> "Settings":
        if self.default_query_limit > self.max_query_limit:
            raise ValueError(
                f"DEFAULT_QUERY_LIMIT ({self.default_query_limit}) must not exceed "
                f"MAX_QUERY_LIMIT ({self.max_query_limit})"
            )
        return self
