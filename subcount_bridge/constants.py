"""Constants used across the subcount-bridge package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "subcount-bridge"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / APP_NAME / f"{APP_NAME}.log"

DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 3000

DEFAULT_COUNTER_URL = "https://mixerno.space/api/youtube-channel-counter/user/"
DEFAULT_SEARCH_URL = "https://mixerno.space/api/youtube-channel-counter/search/"

PLAYER_MESSAGE_EVENT = "PlayerMessage"
