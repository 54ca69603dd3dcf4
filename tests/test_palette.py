import pytest

from subcount_bridge.render import WOOL_PALETTE, ColorResolver, PaletteEntry


def test_exact_palette_colours_resolve_to_themselves() -> None:
    resolver = ColorResolver()

    for entry in WOOL_PALETTE:
        assert resolver.nearest(*entry.rgb) == entry.label


def test_nearest_colour_by_squared_distance() -> None:
    resolver = ColorResolver()

    assert resolver.nearest(255, 0, 0) == "red_wool"
    assert resolver.nearest(0, 0, 0) == "black_wool"
    assert resolver.nearest(250, 250, 250) == "white_wool"


def test_cache_avoids_repeat_scans() -> None:
    resolver = ColorResolver()

    resolver.nearest(1, 2, 3)
    resolver.nearest(1, 2, 3)
    resolver.nearest(4, 5, 6)

    assert resolver.scan_count == 2
    assert resolver.cache_size == 2

    resolver.clear_cache()
    assert resolver.cache_size == 0
    resolver.nearest(1, 2, 3)
    assert resolver.scan_count == 3


def test_custom_palette() -> None:
    resolver = ColorResolver([PaletteEntry("a", (0, 0, 0)), PaletteEntry("b", (100, 100, 100))])

    assert resolver.nearest(60, 60, 60) == "b"


def test_empty_palette_rejected() -> None:
    with pytest.raises(ValueError):
        ColorResolver([])
