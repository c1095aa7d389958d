# pulse/config.py
from __future__ import annotations
import logging
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    jwt_secret: SecretStr = Field(default=SecretStr(""), description="HMAC key for bearer tokens")
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 30
    admin_secret: SecretStr = Field(default=SecretStr(""), description="value expected in x-admin-secret")
    default_merchant: str = "default-merchant"

    host: str = "0.0.0.0"
    port: int = 3000
    subscriber_queue_size: int = Field(default=1000, ge=1)
    log_level: str = "INFO"

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
