"""Client for the public YouTube subscriber-counter API.

The counter endpoint answers with positional arrays rather than named
fields: ``counts[0].count`` is the subscriber count, ``user[0].count`` the
channel name and ``user[1].count`` the avatar URL. That mapping is an
external contract this module does not control; it is validated on every
response and any deviation is reported as a fetch failure.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import quote

import aiohttp

from ..config import ApiConfig

LOGGER = logging.getLogger(__name__)

CHANNEL_ID_PATTERN = re.compile(r"^UC[\w-]{22}$")
_VALID_INPUT_PATTERNS = (
    CHANNEL_ID_PATTERN,
    re.compile(r"^[\w.-]+$"),
    re.compile(r"^@[\w.-]+$"),
    re.compile(r"youtube\.com/(channel/|c/|user/|@)"),
)


class ChannelInputError(ValueError):
    """Raised when a channel reference cannot possibly be valid."""


class RemoteFetchError(RuntimeError):
    """Raised when the counter API cannot be reached or answers unexpectedly."""


@dataclass(slots=True)
class ChannelData:
    """Result of a channel lookup."""

    success: bool
    channel_id: Optional[str] = None
    channel_name: Optional[str] = None
    subscriber_count: int = 0
    avatar_url: Optional[str] = None
    error: Optional[str] = None
    """Human-readable error message if the lookup failed."""


@dataclass(slots=True)
class SearchHit:
    channel_name: str
    channel_id: str
    avatar_url: Optional[str] = None


@dataclass(slots=True)
class SearchResult:
    success: bool
    results: List[SearchHit] = field(default_factory=list)
    error: Optional[str] = None


def extract_channel_id(value: str) -> str:
    """Strip YouTube URL prefixes and a leading ``@`` from ``value``."""

    cleaned = value.strip()
    if "youtube.com" in cleaned:
        if "/channel/" in cleaned:
            cleaned = cleaned.split("/channel/", 1)[1]
        else:
            cleaned = cleaned.rstrip("/").rsplit("/", 1)[-1]
        cleaned = re.split(r"[?&#/]", cleaned, maxsplit=1)[0]

    if cleaned.startswith("@"):
        cleaned = cleaned[1:]
    return cleaned


def is_channel_id(value: str) -> bool:
    return bool(CHANNEL_ID_PATTERN.match(value.strip()))


def validate_channel_input(value: str) -> str:
    """Return the lookup key for ``value``.

    Raises:
        ChannelInputError: If ``value`` is not an id, handle or channel URL.
    """

    cleaned = (value or "").strip()
    if not cleaned or not any(pattern.search(cleaned) for pattern in _VALID_INPUT_PATTERNS):
        raise ChannelInputError(
            "Invalid channel format. Use a YouTube channel URL, ID, or @username."
        )

    key = extract_channel_id(cleaned)
    if not key:
        raise ChannelInputError("Channel reference is empty")
    return key


def format_subscriber_count(count: int) -> str:
    if count >= 1_000_000_000:
        return f"{count / 1_000_000_000:.1f}B"
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def _parse_count(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not a count")
    if isinstance(value, (int, float)):
        return int(value)
    return int(float(str(value).replace(",", "")))


class CounterApiClient:
    """Async client for channel lookups by id and by search term."""

    def __init__(
        self,
        config: ApiConfig,
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if we own it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch_by_id(self, channel_id: str) -> ChannelData:
        """Fetch name, subscriber count and avatar for one channel."""

        url = f"{self._config.counter_url}{quote(channel_id, safe='')}"
        LOGGER.info("Fetching channel data for %s", channel_id)
        try:
            payload = await self._get_json(url)
            data = self._parse_channel(payload, channel_id)
        except RemoteFetchError as exc:
            LOGGER.warning("Failed to fetch channel data for %s: %s", channel_id, exc)
            return ChannelData(success=False, channel_id=channel_id, error=str(exc))

        LOGGER.info(
            "Fetched %s: %d subscribers", data.channel_name, data.subscriber_count
        )
        return data

    async def search_by_term(self, term: str) -> SearchResult:
        """Search channels by free text."""

        url = f"{self._config.search_url}{quote(term, safe='')}"
        LOGGER.info("Searching channels for %r", term)
        try:
            payload = await self._get_json(url)
            hits = self._parse_search(payload)
        except RemoteFetchError as exc:
            LOGGER.warning("Channel search failed for %r: %s", term, exc)
            return SearchResult(success=False, error=str(exc))

        LOGGER.info("Found %d channels for %r", len(hits), term)
        return SearchResult(success=True, results=hits)

    async def resolve_channel(self, value: str) -> ChannelData:
        """Look up ``value`` directly, falling back to the first search hit.

        Raises:
            ChannelInputError: If ``value`` fails validation; nothing is fetched.
        """

        key = validate_channel_input(value)
        if is_channel_id(key):
            return await self.fetch_by_id(key)

        direct = await self.fetch_by_id(key)
        if direct.success:
            return direct

        LOGGER.info("Direct lookup failed, searching for %s", key)
        search = await self.search_by_term(key)
        if not search.success or not search.results:
            return ChannelData(
                success=False,
                channel_id=key,
                error=f"No channels found for: {value.strip()}",
            )

        first = search.results[0]
        LOGGER.info("Using search result %s (%s)", first.channel_name, first.channel_id)
        return await self.fetch_by_id(first.channel_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _get_json(self, url: str) -> Any:
        session = await self._ensure_session()
        try:
            async with session.get(url) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise RemoteFetchError(
                        f"API error {response.status}: {detail.strip()[:200]}"
                    )
                return await response.json(content_type=None)
        except RemoteFetchError:
            raise
        except asyncio.TimeoutError as exc:
            raise RemoteFetchError("Request timed out") from exc
        except aiohttp.ClientError as exc:
            raise RemoteFetchError(f"Request failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteFetchError(f"Response is not valid JSON: {exc}") from exc

    @staticmethod
    def _parse_channel(payload: Any, channel_id: str) -> ChannelData:
        try:
            subscriber_count = _parse_count(payload["counts"][0]["count"])
            user = payload["user"]
            avatar = user[1]["count"]
            name = user[0].get("count") if isinstance(user[0], dict) else None
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise RemoteFetchError("Invalid API response structure") from exc

        return ChannelData(
            success=True,
            channel_id=channel_id,
            channel_name=str(name) if name else "Unknown Channel",
            subscriber_count=subscriber_count,
            avatar_url=str(avatar) if avatar else None,
        )

    @staticmethod
    def _parse_search(payload: Any) -> List[SearchHit]:
        items = payload.get("list") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise RemoteFetchError("Invalid search API response structure")

        hits: List[SearchHit] = []
        for item in items:
            if not isinstance(item, (list, tuple)) or len(item) < 3:
                continue
            hits.append(
                SearchHit(
                    channel_name=str(item[0]),
                    avatar_url=str(item[1]) if item[1] else None,
                    channel_id=str(item[2]),
                )
            )
        return hits
