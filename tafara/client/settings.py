"""Per-install client preferences: dark mode and the signed-in username.

Only non-secret state lives here. Provider keys stay on the server.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from tafara.services.settings import get_settings

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"


@dataclass
class AppSettings:
    path: Path
    dark_mode: bool = False
    username: Optional[str] = None

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppSettings":
        """Read settings from `path` (defaults to `$TAFARA_HOME/settings.json`).

        A missing or unreadable file yields defaults.
        """
        if path is None:
            path = get_settings().tafara_home / SETTINGS_FILE
        settings = cls(path=Path(path))
        if not settings.path.exists():
            return settings
        try:
            data = json.loads(settings.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("settings: could not read %s (%s); using defaults", settings.path, e)
            return settings
        if isinstance(data, dict):
            settings.dark_mode = bool(data.get("dark_mode", False))
            username = data.get("username")
            settings.username = username if isinstance(username, str) and username else None
        return settings

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"dark_mode": self.dark_mode, "username": self.username}
        self.path.write_text(json.dumps(payload), encoding="utf-8")

    def toggle_dark_mode(self) -> bool:
        self.dark_mode = not self.dark_mode
        self.save()
        return self.dark_mode

    def sign_in(self, username: str) -> None:
        self.username = username
        self.save()

    def logout(self) -> None:
        self.username = None
        self.save()

    @property
    def signed_in(self) -> bool:
        return bool(self.username)
