from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import PriceMode


class Settings(BaseSettings):
    websocket_url: str = Field(default="wss://btc.coinybubble.com/ws/btc")
    debug: bool = Field(default=False)

    max_reconnect_attempts: int = Field(default=5, ge=0)
    reconnect_base_ms: int = Field(default=1000, ge=1)
    mock_interval_ms: int = Field(default=1000, ge=1)

    retention_ms: int = Field(default=300_000, ge=1)
    store_capacity: int = Field(default=1000, ge=1)
    cache_capacity: int = Field(default=10, ge=1)
    trade_display_limit: int = Field(default=25, ge=1)
    price_mode: PriceMode = Field(default=PriceMode.MEAN)

    stale_after_ms: int = Field(default=10_000, ge=1)
    tick_interval_ms: int = Field(default=1000, ge=1)

    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="VSM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
