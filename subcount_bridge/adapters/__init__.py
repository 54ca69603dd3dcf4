"""Adapter modules for external integrations."""

from .avatar import AvatarLoader, ImageProcessingError, decode_and_resize
from .counter_api import (
    ChannelData,
    ChannelInputError,
    CounterApiClient,
    RemoteFetchError,
    SearchHit,
    SearchResult,
    format_subscriber_count,
    validate_channel_input,
)

__all__ = [
    "AvatarLoader",
    "ChannelData",
    "ChannelInputError",
    "CounterApiClient",
    "ImageProcessingError",
    "RemoteFetchError",
    "SearchHit",
    "SearchResult",
    "decode_and_resize",
    "format_subscriber_count",
    "validate_channel_input",
]
