"""
dylive - Settings Manager
Explicit configuration passed into every client, resolver and watcher call,
with JSON persistence of user preferences.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path.home() / ".dylive.json"

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 13_2_3 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/13.0.3 Mobile/15E148 Safari/604.1"
)
DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseModel):
    """Runtime configuration. Build one and hand it to DouyinClient."""

    # HTTP
    http_timeout: float = Field(default=5.0, gt=0)
    mobile_user_agent: str = MOBILE_USER_AGENT
    desktop_user_agent: str = DESKTOP_USER_AGENT
    # live.douyin.com answers a bot challenge without this cookie
    ac_nonce: str = "0123407cc00a9e438deb4"
    max_redirect_hops: int = Field(default=5, ge=1)

    # Profile endpoint; device IDs expire and must be replaced now and then
    device_id: int = 66178590526

    # Playback preferences; an empty quality selects the room default URL
    quality: str = ""
    stream_format: str = "flv"

    # Remembered between runs
    last_category_id: str = ""
    last_category_name: str = ""

    verbose: bool = False


class SettingsManager:
    """
    Loads and saves Settings as JSON, merged with defaults so that new
    settings appear automatically in old files.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._settings_file = Path(path) if path else DEFAULT_CONFIG_FILE
        self._settings = self._load_settings()

    @property
    def path(self) -> Path:
        return self._settings_file

    @property
    def settings(self) -> Settings:
        return self._settings

    def _load_settings(self) -> Settings:
        """Load settings from JSON file or fall back to defaults."""
        if not self._settings_file.exists():
            return Settings()

        try:
            with open(self._settings_file, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"[SettingsManager] Ignoring unreadable {self._settings_file}: {e}")
            return Settings()

        if not isinstance(loaded, dict):
            return Settings()

        try:
            return Settings(**{**Settings().model_dump(), **loaded})
        except ValidationError as e:
            logger.warning(f"[SettingsManager] Invalid settings in {self._settings_file}: {e}")
            return Settings()

    def save(self) -> None:
        """Persist settings to the JSON file."""
        try:
            with open(self._settings_file, 'w', encoding='utf-8') as f:
                json.dump(self._settings.model_dump(), f, indent=2, ensure_ascii=False)
        except IOError as e:
            logger.error(f"[SettingsManager] Error saving settings: {e}")

    def update(self, **changes: Any) -> Settings:
        """Return and keep a copy of the settings with changes applied."""
        data: Dict[str, Any] = {**self._settings.model_dump(), **changes}
        self._settings = Settings(**data)
        return self._settings

    def remember_category(self, category_id: str, name: str = "") -> None:
        """Remember the last selected category and save."""
        self.update(last_category_id=category_id, last_category_name=name)
        self.save()

