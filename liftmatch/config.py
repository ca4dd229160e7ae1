"""Application configuration using pydantic-settings pattern."""

from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class SoftFallbackPolicy(str, Enum):
    """What the resolver does when every verification tier fails."""

    REUSE_FIRST = "reuse_first"
    CREATE_NEW = "create_new"
    RAISE = "raise"


class MatchTolerances(BaseModel):
    """Empirically tuned matching windows.

    Kept together so a caller can override them per resolver or splitter
    without touching environment configuration.
    """

    ranking_window_before_days: int = Field(
        default=3, ge=0, description="Days before the event searched in rankings"
    )
    ranking_window_after_days: int = Field(
        default=10, ge=0, description="Days after the event searched in rankings"
    )
    history_date_days: int = Field(
        default=14, ge=0, description="Meet date tolerance for history entries"
    )
    rolling_qualifier_date_days: int = Field(
        default=30, ge=0, description="Date tolerance for rolling qualifier meets"
    )
    rolling_qualifier_keywords: list[str] = Field(
        default_factory=lambda: ["online qualifier"],
        description="Lower-case meet name fragments denoting a rolling qualifier",
    )
    lift_kg: float = Field(default=0.1, ge=0.0, description="Total/snatch/CJ tolerance")
    bodyweight_kg: float = Field(
        default=0.25, ge=0.0, description="Bodyweight tolerance for verification"
    )
    split_bodyweight_kg: float = Field(
        default=2.0, ge=0.0, description="Bodyweight tolerance when splitting"
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "liftmatch"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Database (Turso / local SQLite)
    turso_database_url: str | None = Field(default=None)
    turso_auth_token: str | None = Field(default=None)

    # Upstream lookups (rankings, member history)
    upstream_timeout_seconds: float = Field(default=30.0, gt=0.0)
    upstream_max_attempts: int = Field(default=2, ge=1)
    rankings_cache_ttl_seconds: float = Field(default=900.0, ge=0.0)
    rankings_cache_max_size: int = Field(default=1000, ge=1)
    max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Concurrent resolutions; sized to the lookup services' rate limits",
    )

    # Resolver
    soft_fallback_policy: SoftFallbackPolicy = Field(
        default=SoftFallbackPolicy.REUSE_FIRST
    )
    search_unlinked_candidates: bool = Field(
        default=True,
        description="Look up member ids for candidates without one during Tier 2",
    )

    # Tolerances
    ranking_window_before_days: int = Field(default=3, ge=0)
    ranking_window_after_days: int = Field(default=10, ge=0)
    history_date_days: int = Field(default=14, ge=0)
    rolling_qualifier_date_days: int = Field(default=30, ge=0)
    lift_tolerance_kg: float = Field(default=0.1, ge=0.0)
    bodyweight_tolerance_kg: float = Field(default=0.25, ge=0.0)
    split_bodyweight_tolerance_kg: float = Field(default=2.0, ge=0.0)

    # Duplicate detection
    duplicate_min_confidence: int = Field(default=50, ge=0, le=100)
    weight_class_spread_kg: float = Field(default=20.0, ge=0.0)
    total_jump_kg: float = Field(default=50.0, ge=0.0)
    similar_name_threshold: float = Field(default=0.92, ge=0.0, le=1.0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def tolerances(self) -> MatchTolerances:
        """Build the tolerance bundle from the flat settings."""
        return MatchTolerances(
            ranking_window_before_days=self.ranking_window_before_days,
            ranking_window_after_days=self.ranking_window_after_days,
            history_date_days=self.history_date_days,
            rolling_qualifier_date_days=self.rolling_qualifier_date_days,
            lift_kg=self.lift_tolerance_kg,
            bodyweight_kg=self.bodyweight_tolerance_kg,
            split_bodyweight_kg=self.split_bodyweight_tolerance_kg,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
