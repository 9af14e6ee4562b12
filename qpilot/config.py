"""
Configuration management using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables (or a local .env)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Site under test
    base_url: str = "https://the-internet.herokuapp.com"

    # Browser
    browser_type: Literal["chromium", "firefox", "webkit"] = "chromium"
    browser_headless: bool = True
    browser_timeout: int = 30000  # milliseconds
    browser_slow_mo: int = 0
    screenshot_on_action: bool = False

    # Element lookup and assertions
    locator_timeout: int = 5000  # milliseconds per strategy
    expect_timeout: int = 5000  # milliseconds
    expect_interval: int = 100  # milliseconds

    # OpenAI
    openai_api_key: str = Field(default="")
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.1

    # LLM cost control
    llm_cache_ttl: int = 300  # seconds
    llm_max_tokens: int = 1024

    # q() resolution: "auto" uses the LLM when a key is set and falls back to rules
    q_resolver: Literal["auto", "llm", "rules"] = "auto"

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key) and self.q_resolver != "rules"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
