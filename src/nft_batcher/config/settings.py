from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """應用程式環境設定。"""

    batch_delay_ms: int = Field(10, alias="BATCH_DELAY_MS")
    batch_chunk_size: int = Field(25, alias="BATCH_CHUNK_SIZE")
    batch_fetch_timeout_seconds: Optional[float] = Field(None, alias="BATCH_FETCH_TIMEOUT_SECONDS")

    gateway_base_url: Optional[str] = Field(None, alias="GATEWAY_BASE_URL")
    gateway_timeout_seconds: float = Field(30.0, alias="GATEWAY_TIMEOUT_SECONDS")
    gateway_api_key: Optional[str] = Field(None, alias="GATEWAY_API_KEY")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=(".env",), env_file_encoding="utf-8", extra="ignore")

    @property
    def batch_delay_seconds(self) -> float:
        return self.batch_delay_ms / 1000.0

    @field_validator("batch_fetch_timeout_seconds", mode="before")
    @classmethod
    def _empty_timeout(cls, value: Optional[str | float]) -> Optional[float]:
        if value in (None, "", "null", "None"):
            return None
        if isinstance(value, str):
            return float(value)
        return value


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """載入並快取設定。"""

    return AppSettings()
