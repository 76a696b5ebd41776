from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "Hail Solutions CRM"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./hailcrm.sqlite"
    database_echo: bool = False

    # RBAC
    rbac_cache_ttl_seconds: int = 300  # 5 minutes
    expose_forbidden_detail: bool = True  # name the missing permission/role in 403 bodies

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = False
    log_format: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
