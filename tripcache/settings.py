import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./tripcache.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Retry Configuration
    retry_max_retries: int = Field(default=3, alias="RETRY_MAX_RETRIES")
    retry_initial_delay: float = Field(default=1.0, alias="RETRY_INITIAL_DELAY")
    retry_backoff_factor: float = Field(default=2.0, alias="RETRY_BACKOFF_FACTOR")
    retry_max_delay: float = Field(default=10.0, alias="RETRY_MAX_DELAY")

    # Request Configuration
    debounce_period: float = Field(default=0.3, alias="DEBOUNCE_PERIOD")
    http_timeout: float = Field(default=30.0, alias="HTTP_TIMEOUT")
    key_max_length: int = Field(default=200, alias="CACHE_KEY_MAX_LENGTH")
    compression_threshold: int = Field(default=1024, alias="COMPRESSION_THRESHOLD")

    # Maintenance Configuration
    cleanup_interval_seconds: int = Field(default=300, alias="CACHE_CLEANUP_INTERVAL")
    refresh_interval_seconds: int = Field(default=1800, alias="CACHE_REFRESH_INTERVAL")
    warming_concurrency: int = Field(default=3, alias="CACHE_WARMING_CONCURRENCY")
    install_defaults: bool = Field(default=True, alias="CACHE_INSTALL_DEFAULTS")

    # Debug / Server Configuration
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    debug_server_host: str = Field(default="127.0.0.1", alias="DEBUG_SERVER_HOST")
    debug_server_port: int = Field(default=8700, alias="DEBUG_SERVER_PORT")


global_settings = Settings.model_validate(os.environ)
