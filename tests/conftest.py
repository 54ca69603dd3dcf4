import pytest

from subcount_bridge.config import BridgeConfig, load_config


@pytest.fixture
def fast_config(tmp_path) -> BridgeConfig:
    """Default configuration with every pacing delay removed."""
    config = load_config(tmp_path / "subcount-bridge.cfg")
    config.server.welcome_delay_seconds = 0.0
    config.commands.command_interval_ms = 0
    config.commands.batch_delay_ms = 0
    config.commands.image_batch_delay_ms = 0
    config.commands.clear_batch_delay_ms = 0
    config.commands.reply_pause_ms = 0
    return config
