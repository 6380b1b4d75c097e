"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HtmlSettings(BaseModel):
    """Options for the inline HTML rewrite filters."""

    # Master switch for the image rewrite filter
    use_responsive_images: bool = True
    # Used when no width can be inferred from the img tag
    fallback_image_max_width: int = 1024
    image_quality: int = 90


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # WordPress source site
    wp_url: str = ""
    graphql_url: str = ""
    wp_auth_user: str | None = None
    wp_auth_password: str | None = None

    # Media items referenced by id are resolved lazily elsewhere
    lazy_nodes: bool = False

    html: HtmlSettings = Field(default_factory=HtmlSettings)

    # Output
    path_prefix: str = ""
    derivatives_path: str = "./public/static"
    downloads_path: str = "./.cache/downloads"

    # Database
    database_url: str = "sqlite+aiosqlite:///./.cache/pressmark.db"

    # Cache
    cache_ttl_seconds: int = 300

    # HTTP
    http_timeout_seconds: float = 30.0
    media_batch_size: int = 100

    # Debug mode
    debug: bool = False

    @property
    def base_url(self) -> str:
        """Return the site URL without a trailing slash."""
        return self.wp_url.rstrip("/")

    @property
    def resolved_graphql_url(self) -> str:
        """Return the GraphQL endpoint, defaulting to <wp_url>/graphql."""
        if self.graphql_url:
            return self.graphql_url
        return f"{self.base_url}/graphql"

    @property
    def has_basic_auth(self) -> bool:
        """Check if basic auth credentials are configured."""
        return bool(self.wp_auth_user and self.wp_auth_password)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
