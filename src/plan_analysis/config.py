"""Application configuration using pydantic-settings."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables.

    Only the app factory reads these; every component receives its
    configuration through its constructor.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PLAN_ANALYSIS_",
        extra="ignore",
        protected_namespaces=(),
    )

    # Anthropic API
    anthropic_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Anthropic API key used for plan analysis",
    )
    primary_model: str = Field(
        default="claude-sonnet-4-5-20250929",
        description="Model asked first for every analysis",
    )
    fallback_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model retried once when the primary model is reported not found",
    )
    max_output_tokens: int = Field(default=4096, ge=256, le=32000)
    model_timeout_seconds: float = Field(default=180.0, gt=0)

    # Plan image storage
    plan_bucket: str = Field(
        default="house-plans",
        description="Logical bucket holding uploaded plan images",
    )
    bucket_root: str = Field(
        default="data/buckets",
        description="Directory backing the bucket store (one subdirectory per bucket)",
    )
    public_base_url: str = Field(
        default="",
        description="Base URL used to fetch relative image references publicly",
    )
    image_fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    max_image_bytes: int = Field(
        default=20 * 1024 * 1024,
        ge=1024,
        description="Largest image accepted from the public fallback fetch",
    )

    # Analysis records
    database_path: str = Field(default="data/plan_analysis.db")
    lock_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long a request waits for another analysis of the same property",
    )

    # Web server
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of origins allowed to call the API",
    )
    web_host: str = Field(default="0.0.0.0", description="Web server host")
    web_port: int = Field(default=8000, description="Web server port")
    json_logs: bool = Field(default=False, description="Emit JSON logs instead of console output")

    def get_cors_origins(self) -> list[str]:
        """Parse cors_origins string into a list of origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
