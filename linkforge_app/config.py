from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "LinkForge"
    app_version: str = "1.0.0"

    # Database
    database_url: str = "sqlite:///./linkforge.db"
    directory_backend: str = "sql"  # Options: "sql", "memory"
    directory_request_workers: int = 8  # Threads for lookups and management calls
    directory_tracking_workers: int = 4  # Threads for click event writes and counter increments

    # Short links
    base_url: str = "http://127.0.0.1:8000"
    short_code_length: int = 7
    short_code_max_retries: int = 5
    guest_link_ttl_days: int = 7

    # Redirect lookup
    lookup_timeout_seconds: float = 2.0
    lookup_retry_attempts: int = 2
    lookup_retry_base_delay: float = 0.05

    # Click tracking
    tracking_mode: str = "queue"  # Options: "queue", "inline"
    tracking_retry_attempts: int = 3
    tracking_retry_base_delay: float = 0.1
    tracking_retry_max_delay: float = 2.0
    tracking_write_timeout_seconds: float = 5.0
    scheduler_drain_timeout: float = 5.0

    # Queue settings
    queue_backend: str = "redis_streams"  # Options: "redis_streams", "memory"
    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "click_events"
    queue_consumer_group: str = "click_workers"
    queue_batch_size: int = 100
    queue_block_ms: int = 1000
    embedded_worker: bool = True  # Run a click worker inside the API process

    # Stats
    stats_default_days: int = 7
    stats_top_referrers: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
