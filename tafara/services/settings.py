"""Application settings loaded from environment variables.

Values come from the process environment, optionally seeded from a `.env`
file at the project root. Call `get_settings.cache_clear()` after changing
the environment (tests do this).
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parents[2]

load_dotenv(PROJECT_ROOT / ".env")


def _split_csv(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings:
    """Server and client configuration.

    Keep all credentials and config centralized here. The shared key is only
    ever read server-side.
    """

    def __init__(self) -> None:
        self.database_url: str = os.getenv(
            "DATABASE_URL", f"sqlite:///{PROJECT_ROOT / 'local.db'}"
        )
        self.supabase_url: str = os.getenv("SUPABASE_URL", "").rstrip("/")
        self.supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
        self.shared_api_key: Optional[str] = os.getenv("SHARED_API_KEY") or None
        self.preset_emails: List[str] = [
            e.lower() for e in _split_csv(os.getenv("PRESET_EMAILS", ""))
        ]
        self.openrouter_url: str = os.getenv(
            "OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions"
        )
        self.app_url: str = os.getenv("APP_URL", "https://tafara-ai.vercel.app")
        self.app_title: str = os.getenv("APP_TITLE", "Tafara.ai")
        self.upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30"))
        self.tafara_home: Path = Path(
            os.getenv("TAFARA_HOME", str(Path.home() / ".tafara"))
        ).expanduser()
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "8000"))
        self.ssl_certfile: Optional[str] = os.getenv("SSL_CERTFILE") or None
        self.ssl_keyfile: Optional[str] = os.getenv("SSL_KEYFILE") or None

    def is_preset_email(self, email: str) -> bool:
        return bool(email) and email.lower() in self.preset_emails


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
