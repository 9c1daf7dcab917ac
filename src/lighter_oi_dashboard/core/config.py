from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535, validation_alias=AliasChoices("LLP_PORT", "PORT"))

    rest_base_url: str = Field(default="https://mainnet.zklighter.elliot.ai")
    account_index: int = Field(default=281474976710654, ge=0)
    websocket_url: str = Field(default="wss://mainnet.zklighter.elliot.ai/stream")

    rest_timeout_seconds: float = Field(default=15.0, gt=0)
    ping_interval_seconds: float = Field(default=15.0, gt=0)
    reconnect_seconds: float = Field(default=2.0, ge=0)
    subscribe_max_market_index: int = Field(default=100, ge=0)

    sample_capacity: int = Field(default=6, ge=1)
    sample_max_chars: int = Field(default=500, ge=1)
    refresh_interval_seconds: int = Field(default=30, ge=1)

    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="LLP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def upstream_host(self) -> str:
        return self.rest_base_url.split("://", maxsplit=1)[-1].rstrip("/")
