import logging
from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog
class Settings(BaseSettings):
    """Application settings, read from the environment or a local .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")
    app_name: str = Field(default="Task Board API")
    debug: bool = Field(default=False)
    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./taskboard.db")
    db_pool_size: int = Field(default=20)
    db_max_overflow: int = Field(default=10)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=3600)
    # Security
    secret_key: str = Field(default="your-secret-key-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=30)
    # Transport
    allowed_origins: str = Field(default="http://localhost:3000")
    broadcast_send_timeout: float = Field(default=5.0)
    # Logging
    log_level: str = Field(default="INFO")
    @property
    def origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
def configure_logging(level: str = "INFO") -> None:
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logging.basicConfig(level=numeric_level, format="%(message)s")
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(numeric_level))
