"""
Application Settings
=====================

Loaded from (in order):
  - process env
  - optional `.env` file

The Redis URL is shared with the mesh router, so ``MESH_REDIS_URL`` wins
over the generic ``REDIS_URL`` when both are set.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Mesh inbox configuration with safe development defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # --- service ---
    APP_NAME: str = "Mesh Inbox API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3002
    API_V1_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])

    # --- logging ---
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str | None = None
    # None = JSON outside development
    LOG_JSON: bool | None = None

    # --- backing store ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("MESH_REDIS_URL", "REDIS_URL"),
    )
    STORAGE_BACKEND: Literal["auto", "redis", "memory"] = "auto"
    REDIS_CONNECT_TIMEOUT: float = 10.0
    REDIS_SOCKET_TIMEOUT: float = 5.0

    # --- queueing ---
    DEFAULT_TIER: Literal["Q0", "Q1", "Q2", "Q3"] = "Q2"
    DISCOVERY_WINDOW_MS: int = 60_000
    DISCOVERY_WINDOW_MIN_MS: int = 1_000
    DISCOVERY_WINDOW_MAX_MS: int = 300_000

    # --- search DSL ---
    SEARCH_ADDRESS_TOKENS: list[str] = Field(
        default_factory=lambda: [
            "mesh-inbox",
            "mesh-inbox-api.vercel.app",
            "mesh-inbox-api",
        ]
    )

    @field_validator("DISCOVERY_WINDOW_MIN_MS", "DISCOVERY_WINDOW_MAX_MS", "DISCOVERY_WINDOW_MS")
    @classmethod
    def _positive_window(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("discovery window bounds must be positive")
        return v

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
