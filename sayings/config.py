from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from typing import Optional

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Sayings Search"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./sayings.db"

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = False

    # Search settings
    search_language: str = "english"  # PostgreSQL text search configuration
    search_default_page_size: int = 20
    search_max_page_size: int = 50
    search_user_limit: int = 10
    search_topic_limit: int = 10
    typeahead_post_limit: int = 6
    typeahead_post_max: int = 10
    typeahead_user_limit: int = 5
    typeahead_topic_limit: int = 6
    search_adapter_timeout_seconds: float = 5.0
    search_partial_results: bool = False

    # Search analytics settings
    search_analytics_enabled: bool = True
    click_require_known_query: bool = False
    admin_api_key: Optional[str] = None

    # Topic settings
    topic_search_popularity_increment: float = 0.05
    topic_min_confidence: float = 0.2
    trending_ttl_seconds: int = 3600
    trending_cache_size: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
