from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    origin: str = Field(default="", alias="ORIGIN")
    ws_endpoint: str = Field(default="ws://localhost:8000/ws", alias="WS_ENDPOINT")

    ai_watchdog_sec: float = Field(default=5.0, alias="AI_WATCHDOG_SEC")
    ai_policy_timeout_sec: float = Field(default=3.0, alias="AI_POLICY_TIMEOUT_SEC")

    reconnect_attempts: int = Field(default=5, alias="WS_RECONNECT_ATTEMPTS")
    reconnect_delay_sec: float = Field(default=1.0, alias="WS_RECONNECT_DELAY_SEC")
    reconnect_max_delay_sec: float = Field(default=16.0, alias="WS_RECONNECT_MAX_DELAY_SEC")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    def allowed_origins(self) -> List[str]:
        """
        Splits ORIGIN on commas and drops blanks.
        Example: "https://bridge.example.org, https://www.bridge.example.org"
        """
        return ["http://localhost:5173"] + [x.strip() for x in self.origin.split(",") if x.strip()]

    def backoff_delay(self, attempt: int) -> float:
        """Delay before reconnect ``attempt`` (1-based): doubles each time, capped."""
        return min(self.reconnect_delay_sec * (2 ** (attempt - 1)), self.reconnect_max_delay_sec)

    def log_status(self) -> None:
        env_name = os.getenv("RENDER_SERVICE_NAME") or os.getenv("ENV", "unknown")
        logger.info(
            "Table settings: origins=%s, ai_watchdog=%ss, policy_timeout=%ss, reconnect=%sx from %ss, env=%s",
            self.allowed_origins(),
            self.ai_watchdog_sec,
            self.ai_policy_timeout_sec,
            self.reconnect_attempts,
            self.reconnect_delay_sec,
            env_name,
        )


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    settings.log_status()
    return settings


settings = get_settings()
