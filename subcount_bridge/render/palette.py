"""Wool palette and nearest-color resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

LOGGER = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


@dataclass(frozen=True, slots=True)
class PaletteEntry:
    label: str
    rgb: RGB


WOOL_PALETTE: Tuple[PaletteEntry, ...] = (
    PaletteEntry("white_wool", (233, 236, 236)),
    PaletteEntry("orange_wool", (240, 118, 19)),
    PaletteEntry("magenta_wool", (189, 68, 179)),
    PaletteEntry("light_blue_wool", (58, 175, 217)),
    PaletteEntry("yellow_wool", (248, 198, 39)),
    PaletteEntry("lime_wool", (112, 185, 25)),
    PaletteEntry("pink_wool", (237, 141, 172)),
    PaletteEntry("gray_wool", (62, 68, 71)),
    PaletteEntry("light_gray_wool", (142, 142, 134)),
    PaletteEntry("cyan_wool", (21, 137, 145)),
    PaletteEntry("purple_wool", (121, 42, 172)),
    PaletteEntry("blue_wool", (53, 57, 157)),
    PaletteEntry("brown_wool", (114, 71, 40)),
    PaletteEntry("green_wool", (84, 109, 27)),
    PaletteEntry("red_wool", (160, 39, 34)),
    PaletteEntry("black_wool", (20, 21, 25)),
)


class ColorResolver:
    """Maps RGB triples to the closest palette label, caching every answer.

    One resolver is shared by all connections; ``clear_cache`` therefore
    affects every connection at once.
    """

    def __init__(self, palette: Sequence[PaletteEntry] = WOOL_PALETTE) -> None:
        if not palette:
            raise ValueError("Palette cannot be empty")
        self._palette = tuple(palette)
        self._cache: Dict[RGB, str] = {}
        self.scan_count = 0

    @property
    def palette(self) -> Tuple[PaletteEntry, ...]:
        return self._palette

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def nearest(self, r: int, g: int, b: int) -> str:
        key = (r, g, b)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        label = self._scan(key)
        self._cache[key] = label
        return label

    def clear_cache(self) -> None:
        self._cache.clear()
        LOGGER.debug("Color cache cleared")

    def _scan(self, rgb: RGB) -> str:
        self.scan_count += 1
        r, g, b = rgb
        best = self._palette[0]
        best_distance = None
        for entry in self._palette:
            er, eg, eb = entry.rgb
            distance = (r - er) ** 2 + (g - eg) ** 2 + (b - eb) ** 2
            if best_distance is None or distance < best_distance:
                best = entry
                best_distance = distance
        return best.label
