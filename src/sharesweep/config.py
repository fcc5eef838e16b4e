"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sharesweep.constants import (
    BALANCE_POLL_INTERVAL,
    DEFAULT_FEE_RATE,
    ENRICH_BATCH_DELAY,
    ENRICH_BATCH_SIZE,
    INDEXER_URL,
    USER_AGENT,
)
from sharesweep.models import NetworkType


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SHARESWEEP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    network: NetworkType = NetworkType.MAINNET

    # Indexer
    indexer_url: str = INDEXER_URL
    user_agent: str = USER_AGENT
    request_timeout: float = Field(default=30.0, gt=0)

    # Script enrichment rate limiting
    enrich_batch_size: int = Field(default=ENRICH_BATCH_SIZE, ge=1)
    enrich_batch_delay: float = Field(default=ENRICH_BATCH_DELAY, ge=0.0)

    balance_poll_interval: float = Field(default=BALANCE_POLL_INTERVAL, gt=0)
    default_fee_rate: float = Field(default=DEFAULT_FEE_RATE, gt=0)

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()
