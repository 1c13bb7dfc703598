from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


REQUIRED_KEYS = ("OPENAI_API_KEY", "OPENROUTER_API_KEY", "DATABASE_URL")


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY") or None
        self.openrouter_api_key: Optional[str] = os.getenv("OPENROUTER_API_KEY") or None
        self.database_url: Optional[str] = os.getenv("DATABASE_URL") or None

        self.openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.deepseek_model: str = os.getenv("DEEPSEEK_MODEL", "deepseek/deepseek-r1-zero:free")
        self.maverick_model: str = os.getenv(
            "MAVERICK_MODEL", "meta-llama/llama-4-maverick:free"
        )
        self.openrouter_api_url: str = os.getenv(
            "OPENROUTER_API_URL", "https://openrouter.ai/api/v1/chat/completions"
        )
        self.openrouter_referer: str = os.getenv(
            "OPENROUTER_REFERER", "https://infonex.replit.app"
        )
        self.openrouter_title: str = os.getenv("OPENROUTER_TITLE", "Infonex by Infonex Pvt Ltd")
        self.temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.7"))

        self.upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "60"))
        self.search_timeout: float = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "10"))

        self.chat_data_dir: Path = Path(
            os.getenv("CHAT_DATA_DIR", str(Path.home() / ".infonex"))
        ).expanduser()
        self.api_base_url: str = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in {"dev", "development", "local"}

    def missing_keys(self) -> List[str]:
        """Names of required environment variables that are not configured."""
        values = {
            "OPENAI_API_KEY": self.openai_api_key,
            "OPENROUTER_API_KEY": self.openrouter_api_key,
            "DATABASE_URL": self.database_url,
        }
        return [key for key in REQUIRED_KEYS if not values[key]]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
