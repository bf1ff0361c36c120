"""Application settings and configuration.

This module defines the configuration options for the Nosedive service.
Settings are loaded from environment variables with sensible defaults.

Two groups exist:

- ``Settings``: process-level wiring (database, auth, CORS, limiter backend).
  Instantiated once at import time as ``settings``.
- ``ReputationSettings``: reputation tunables. These are operational knobs
  that get adjusted while the service runs, so callers build a fresh instance
  per operation through ``get_reputation_settings()`` instead of caching one.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Nosedive", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    admin_key: str | None = Field(default=None, alias="ADMIN_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Anonymous session cookie
    session_cookie_name: str = Field(default="sid", alias="SESSION_COOKIE_NAME")
    session_cookie_secure: bool = Field(default=False, alias="SESSION_COOKIE_SECURE")
    session_cookie_max_age: int = Field(
        default=60 * 60 * 24 * 365,
        alias="SESSION_COOKIE_MAX_AGE",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./nosedive.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Request bucket limiter; in-process unless a Redis URL is configured
    rate_limit_redis_url: str | None = Field(default=None, alias="RATE_LIMIT_REDIS_URL")
    rate_limit_rating_requests: int = Field(default=20, alias="RATE_LIMIT_RATING_REQUESTS")
    rate_limit_rating_window_seconds: int = Field(
        default=60,
        alias="RATE_LIMIT_RATING_WINDOW_SECONDS",
    )
    rate_limit_write_requests: int = Field(default=30, alias="RATE_LIMIT_WRITE_REQUESTS")
    rate_limit_write_window_seconds: int = Field(
        default=60,
        alias="RATE_LIMIT_WRITE_WINDOW_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


class ReputationSettings(BaseSettings):
    """Reputation, quota and abuse-control tunables.

    Attributes:
        prior_mean: Score assumed for an identity with no ratings.
        prior_weight: Virtual sample size backing ``prior_mean``.
        weight_min: Rating weight of a rater sitting at 1 star.
        weight_max: Rating weight of a rater sitting at 5 stars.
        rating_halflife_days: Half-life of the recency decay; ``<= 0`` disables it.
        require_interaction_days: Lookback for the "replied before rating"
            requirement; ``<= 0`` disables it. Off by default; set
            ``REP_REQUIRE_INTERACTION_DAYS=7`` for the one-week rule.
        rating_global_per_hour: Ratings a rater may issue in a trailing hour.
        rating_pair_cooldown_hours: Minimum gap between two ratings of the
            same target by the same rater.
        brigade_window_minutes: Window inspected by the brigade detector.
        brigade_min_raters: Distinct raters in the window that raise a flag.
        post_rating_weighted: Aggregate post ratings with rater weight and
            decay instead of the unweighted fast path.
    """

    prior_mean: float = Field(default=4.0, alias="REP_PRIOR_MEAN")
    prior_weight: float = Field(default=5.0, alias="REP_PRIOR_WEIGHT")
    weight_min: float = Field(default=0.25, alias="REP_WEIGHT_MIN")
    weight_max: float = Field(default=1.25, alias="REP_WEIGHT_MAX")
    rating_halflife_days: float = Field(default=180.0, alias="REP_RATING_HALFLIFE_DAYS")
    require_interaction_days: float = Field(default=0.0, alias="REP_REQUIRE_INTERACTION_DAYS")
    rating_global_per_hour: int = Field(default=8, alias="REP_RATING_GLOBAL_PER_HOUR")
    rating_pair_cooldown_hours: float = Field(
        default=24.0,
        alias="REP_RATING_PAIR_COOLDOWN_HOURS",
    )
    brigade_window_minutes: float = Field(default=60.0, alias="REP_BRIGADE_WINDOW_MIN")
    brigade_min_raters: int = Field(default=6, alias="REP_BRIGADE_MIN_RATERS")
    post_rating_weighted: bool = Field(default=False, alias="REP_POST_RATING_WEIGHTED")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


def get_reputation_settings() -> ReputationSettings:
    """Return reputation tunables as currently configured in the environment."""
    return ReputationSettings()


settings = Settings()
