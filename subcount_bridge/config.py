"""Configuration loader for subcount-bridge."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from . import constants
from .render.operations import BlockPos, Region

DEFAULT_DIGIT_TEMPLATES = {
    "0": "-34 -64 46 -36 -64 42",
    "1": "2 -64 46 0 -64 42",
    "2": "-2 -64 46 -4 -64 42",
    "3": "-6 -64 46 -8 -64 42",
    "4": "-10 -64 46 -12 -64 42",
    "5": "-14 -64 46 -16 -64 42",
    "6": "-18 -64 46 -20 -64 42",
    "7": "-22 -64 46 -24 -64 42",
    "8": "-26 -64 46 -28 -64 42",
    "9": "-30 -64 46 -32 -64 42",
}

DEFAULT_CLEAR_AREAS = [
    "3 -60 42 -31 -60 46",
    "-31 -60 82 3 -59 48",
]


def _default_templates() -> Dict[str, Region]:
    return {digit: Region.parse(value) for digit, value in DEFAULT_DIGIT_TEMPLATES.items()}


def _default_clear_areas() -> List[Region]:
    return [Region.parse(value) for value in DEFAULT_CLEAR_AREAS]


@dataclass(slots=True)
class ServerConfig:
    host: str = constants.DEFAULT_SERVER_HOST
    port: int = constants.DEFAULT_SERVER_PORT
    welcome_delay_seconds: float = 1.0


@dataclass(slots=True)
class CommandConfig:
    prefix: str = "!"
    command_interval_ms: int = 50
    batch_delay_ms: int = 100
    image_batch_delay_ms: int = 25
    clear_batch_delay_ms: int = 50
    reply_pause_ms: int = 500

    @property
    def command_interval(self) -> float:
        return self.command_interval_ms / 1000.0

    @property
    def batch_delay(self) -> float:
        return self.batch_delay_ms / 1000.0

    @property
    def image_batch_delay(self) -> float:
        return self.image_batch_delay_ms / 1000.0

    @property
    def clear_batch_delay(self) -> float:
        return self.clear_batch_delay_ms / 1000.0

    @property
    def reply_pause(self) -> float:
        return self.reply_pause_ms / 1000.0


@dataclass(slots=True)
class DisplayConfig:
    subscriber_start: BlockPos = BlockPos(1, -60, 42)
    digit_spacing: int = 4
    max_digits: int = 10
    image_corner: BlockPos = BlockPos(-31, -60, 82)
    image_width: int = 35
    image_height: int = 35
    digit_templates: Dict[str, Region] = field(default_factory=_default_templates)
    clear_areas: List[Region] = field(default_factory=_default_clear_areas)


@dataclass(slots=True)
class LiveConfig:
    poll_interval_seconds: float = 2.0
    max_duration_seconds: float = 300.0


@dataclass(slots=True)
class ApiConfig:
    counter_url: str = constants.DEFAULT_COUNTER_URL
    search_url: str = constants.DEFAULT_SEARCH_URL
    timeout_seconds: float = 10.0
    search_limit: int = 5


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False


@dataclass(slots=True)
class BridgeConfig:
    server: ServerConfig
    commands: CommandConfig
    display: DisplayConfig
    live: LiveConfig
    api: ApiConfig
    logging: LoggingConfig
    raw: ConfigParser
    path: Path


def _parse_regions(value: str) -> List[Region]:
    return [Region.parse(item) for item in value.split(";") if item.strip()]


def load_config(path: Optional[Path] = None) -> BridgeConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "server": {
                "host": constants.DEFAULT_SERVER_HOST,
                "port": str(constants.DEFAULT_SERVER_PORT),
                "welcome_delay_seconds": "1.0",
            },
            "commands": {
                "prefix": "!",
                "command_interval_ms": "50",
                "batch_delay_ms": "100",
                "image_batch_delay_ms": "25",
                "clear_batch_delay_ms": "50",
                "reply_pause_ms": "500",
            },
            "display": {
                "subscriber_start": "1 -60 42",
                "digit_spacing": "4",
                "max_digits": "10",
                "image_corner": "-31 -60 82",
                "image_width": "35",
                "image_height": "35",
                "clear_areas": "; ".join(DEFAULT_CLEAR_AREAS),
            },
            "digit_templates": dict(DEFAULT_DIGIT_TEMPLATES),
            "live": {
                "poll_interval_seconds": "2.0",
                "max_duration_seconds": "300",
            },
            "api": {
                "counter_url": constants.DEFAULT_COUNTER_URL,
                "search_url": constants.DEFAULT_SEARCH_URL,
                "timeout_seconds": "10",
                "search_limit": "5",
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_network": "false",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    server = ServerConfig(
        host=parser.get("server", "host"),
        port=parser.getint("server", "port", fallback=constants.DEFAULT_SERVER_PORT),
        welcome_delay_seconds=max(
            0.0, parser.getfloat("server", "welcome_delay_seconds", fallback=1.0)
        ),
    )

    prefix = parser.get("commands", "prefix", fallback="!").strip() or "!"
    commands = CommandConfig(
        prefix=prefix,
        command_interval_ms=max(
            0, parser.getint("commands", "command_interval_ms", fallback=50)
        ),
        batch_delay_ms=max(0, parser.getint("commands", "batch_delay_ms", fallback=100)),
        image_batch_delay_ms=max(
            0, parser.getint("commands", "image_batch_delay_ms", fallback=25)
        ),
        clear_batch_delay_ms=max(
            0, parser.getint("commands", "clear_batch_delay_ms", fallback=50)
        ),
        reply_pause_ms=max(0, parser.getint("commands", "reply_pause_ms", fallback=500)),
    )

    templates: Dict[str, Region] = {}
    for digit in "0123456789":
        value = parser.get("digit_templates", digit, fallback="").strip()
        if value:
            templates[digit] = Region.parse(value)

    display = DisplayConfig(
        subscriber_start=BlockPos.parse(parser.get("display", "subscriber_start")),
        digit_spacing=parser.getint("display", "digit_spacing", fallback=4),
        max_digits=max(1, parser.getint("display", "max_digits", fallback=10)),
        image_corner=BlockPos.parse(parser.get("display", "image_corner")),
        image_width=max(1, parser.getint("display", "image_width", fallback=35)),
        image_height=max(1, parser.getint("display", "image_height", fallback=35)),
        digit_templates=templates,
        clear_areas=_parse_regions(parser.get("display", "clear_areas", fallback="")),
    )

    live = LiveConfig(
        poll_interval_seconds=max(
            0.1, parser.getfloat("live", "poll_interval_seconds", fallback=2.0)
        ),
        max_duration_seconds=max(
            1.0, parser.getfloat("live", "max_duration_seconds", fallback=300.0)
        ),
    )

    api = ApiConfig(
        counter_url=parser.get("api", "counter_url"),
        search_url=parser.get("api", "search_url"),
        timeout_seconds=parser.getfloat("api", "timeout_seconds", fallback=10.0),
        search_limit=max(1, parser.getint("api", "search_limit", fallback=5)),
    )

    # an empty path turns file logging off
    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    return BridgeConfig(
        server=server,
        commands=commands,
        display=display,
        live=live,
        api=api,
        logging=logging_config,
        raw=parser,
        path=config_path,
    )


def save_config(config: BridgeConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
