"""Tests for avatar download and downscaling."""

from __future__ import annotations

import io
from typing import Tuple

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image

from subcount_bridge.adapters.avatar import (
    AvatarLoader,
    ImageProcessingError,
    decode_and_resize,
)


def create_test_image(
    width: int, height: int, color: Tuple[int, int, int] = (255, 0, 0), fmt: str = "PNG"
) -> bytes:
    img = Image.new("RGB", (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def create_split_image(width: int, height: int) -> bytes:
    """Left half red, right half blue."""
    img = Image.new("RGB", (width, height), (255, 0, 0))
    img.paste((0, 0, 255), (width // 2, 0, width, height))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def test_decode_returns_rows_of_rgb_tuples():
    grid = decode_and_resize(create_test_image(100, 100), 35, 35)

    assert len(grid) == 35
    assert all(len(row) == 35 for row in grid)
    assert grid[0][0] == (255, 0, 0)
    assert grid[34][34] == (255, 0, 0)


def test_decode_crops_to_fill_centered():
    # 400x100 split image: the centered square crop keeps both colours
    grid = decode_and_resize(create_split_image(400, 100), 10, 10)

    assert grid[5][0] == (255, 0, 0)
    assert grid[5][9] == (0, 0, 255)


def test_transparent_pixels_flatten_onto_white():
    img = Image.new("RGBA", (20, 20), (0, 0, 0, 0))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    grid = decode_and_resize(buffer.getvalue(), 4, 4)

    assert {pixel for row in grid for pixel in row} == {(255, 255, 255)}


def test_greyscale_image_is_converted():
    img = Image.new("L", (8, 8), 128)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    grid = decode_and_resize(buffer.getvalue(), 2, 2)

    assert grid[0][0] == (128, 128, 128)


def test_invalid_bytes_raise():
    with pytest.raises(ImageProcessingError):
        decode_and_resize(b"definitely not an image", 35, 35)


def test_invalid_target_size_raises():
    with pytest.raises(ImageProcessingError):
        decode_and_resize(create_test_image(10, 10), 0, 35)


@pytest.mark.asyncio
async def test_loader_downloads_and_resizes():
    image_bytes = create_test_image(64, 64, (0, 255, 0), fmt="JPEG")

    async def handler(request: web.Request) -> web.StreamResponse:
        return web.Response(body=image_bytes, content_type="image/jpeg")

    async def missing(request: web.Request) -> web.StreamResponse:
        return web.Response(status=404)

    app = web.Application()
    app.router.add_get("/avatar.jpg", handler)
    app.router.add_get("/missing.jpg", missing)

    async with TestServer(app) as server:
        loader = AvatarLoader(timeout=2.0)
        try:
            grid = await loader.fetch_and_resize(str(server.make_url("/avatar.jpg")), 5, 5)
            with pytest.raises(ImageProcessingError):
                await loader.fetch_and_resize(str(server.make_url("/missing.jpg")), 5, 5)
        finally:
            await loader.close()

    assert len(grid) == 5
    r, g, b = grid[2][2]
    assert g > 200 and r < 50 and b < 50
