"""Render planning: digit clones, area fills and pixel-art placements."""

from .operations import BlockPos, CloneOp, FillOp, Region, RenderOp, SetBlockOp, to_commands
from .palette import WOOL_PALETTE, ColorResolver, PaletteEntry
from .planner import clear_plan, diff_count_plan, full_count_plan, image_plan

__all__ = [
    "BlockPos",
    "CloneOp",
    "ColorResolver",
    "FillOp",
    "PaletteEntry",
    "Region",
    "RenderOp",
    "SetBlockOp",
    "WOOL_PALETTE",
    "clear_plan",
    "diff_count_plan",
    "full_count_plan",
    "image_plan",
    "to_commands",
]
