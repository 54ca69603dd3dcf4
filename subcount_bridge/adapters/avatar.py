"""Avatar download and downscaling into an RGB pixel grid.

The avatar is cropped to fill the target box (centered, like a CSS
``object-fit: cover``) and resampled down to one pixel per block. Transparent
areas are flattened onto white before sampling.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import List, Optional, Tuple

import aiohttp
from PIL import Image, ImageOps, UnidentifiedImageError

LOGGER = logging.getLogger(__name__)

RGB = Tuple[int, int, int]
PixelGrid = List[List[RGB]]


class ImageProcessingError(RuntimeError):
    """Raised when an avatar cannot be downloaded or decoded."""


def decode_and_resize(image_data: bytes, width: int, height: int) -> PixelGrid:
    """Decode ``image_data`` and return ``height`` rows of ``width`` RGB tuples.

    Raises:
        ImageProcessingError: If the bytes are not a decodable image.
    """

    if width <= 0 or height <= 0:
        raise ImageProcessingError(f"Invalid target size {width}x{height}")

    try:
        img = Image.open(io.BytesIO(image_data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageProcessingError(f"Cannot decode image: {exc}") from exc

    # Convert to RGB if necessary (handles RGBA, palette modes)
    if img.mode in ("RGBA", "LA", "P"):
        background = Image.new("RGB", img.size, (255, 255, 255))
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        background.paste(img, mask=img.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    fitted = ImageOps.fit(
        img, (width, height), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5)
    )
    pixels = list(fitted.getdata())
    return [pixels[row * width : (row + 1) * width] for row in range(height)]


class AvatarLoader:
    """Fetches avatar images over HTTP and turns them into pixel grids."""

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if we own it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch_and_resize(self, url: str, width: int, height: int) -> PixelGrid:
        """Download ``url`` and resample it to ``width`` x ``height``.

        Raises:
            ImageProcessingError: On any download or decode failure.
        """

        LOGGER.info("Downloading avatar from %s", url)
        session = await self._ensure_session()
        try:
            async with session.get(url) as response:
                if response.status >= 400:
                    raise ImageProcessingError(
                        f"HTTP {response.status} while downloading avatar"
                    )
                image_data = await response.read()
        except asyncio.TimeoutError as exc:
            raise ImageProcessingError("Avatar download timed out") from exc
        except aiohttp.ClientError as exc:
            raise ImageProcessingError(f"Avatar download failed: {exc}") from exc

        if not image_data:
            raise ImageProcessingError("Avatar download returned no data")

        grid = await asyncio.to_thread(decode_and_resize, image_data, width, height)
        LOGGER.debug(
            "Avatar resized to %dx%d from %d bytes", width, height, len(image_data)
        )
        return grid
