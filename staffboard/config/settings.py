from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Read from STAFFBOARD_* environment variables or a local .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="STAFFBOARD_", extra="ignore")

    app_name: str = "StaffBoard"
    debug: bool = True
    api_base_url: str = "http://localhost:5000/api"
    request_timeout_seconds: float = 10.0
    state_backend: Literal["sql", "redis"] = "sql"
    state_dsn: str = "sqlite:///./staffboard.db"
    redis_url: str = "redis://localhost:6379/0"
    log_level: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
