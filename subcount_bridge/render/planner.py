"""Pure functions turning counts and pixel grids into render plans.

Digits are drawn by cloning pre-built numerals that already exist in the
world. Slot ``i`` (0 = most significant digit) sits ``i * digit_spacing``
blocks along negative X from ``subscriber_start``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

from .operations import BlockPos, CloneOp, FillOp, Region, RenderOp, SetBlockOp
from .palette import RGB, ColorResolver

if TYPE_CHECKING:
    from ..config import DisplayConfig

LOGGER = logging.getLogger(__name__)

BLANK = " "


def _digits(count: int, max_digits: int) -> str:
    if count < 0:
        raise ValueError(f"Subscriber count cannot be negative: {count}")
    return str(count)[:max_digits]


def slot_origin(layout: DisplayConfig, index: int) -> BlockPos:
    return layout.subscriber_start.offset(dx=-index * layout.digit_spacing)


def slot_footprint(layout: DisplayConfig, index: int) -> Region:
    """Box covered by a digit drawn in slot ``index``."""

    origin = slot_origin(layout, index)
    sizes = [template.size for template in layout.digit_templates.values()] or [(0, 0, 0)]
    dx = max(size[0] for size in sizes)
    dy = max(size[1] for size in sizes)
    dz = max(size[2] for size in sizes)
    return Region(origin, origin.offset(dx, dy, dz))


def _clone_digit(layout: DisplayConfig, digit: str, index: int) -> Optional[CloneOp]:
    template = layout.digit_templates.get(digit)
    if template is None:
        LOGGER.warning("No template found for digit %r", digit)
        return None
    return CloneOp(source=template, destination=slot_origin(layout, index))


def full_count_plan(count: int, layout: DisplayConfig) -> List[RenderOp]:
    """One clone per digit, most significant digit in slot 0."""

    plan: List[RenderOp] = []
    for index, digit in enumerate(_digits(count, layout.max_digits)):
        op = _clone_digit(layout, digit, index)
        if op is not None:
            plan.append(op)
    return plan


def diff_count_plan(
    new_count: int, old_count: Optional[int], layout: DisplayConfig
) -> List[RenderOp]:
    """Only the slots whose digit changed: clear the slot, then clone the new digit.

    The shorter number is padded with blanks past its last digit so both line
    up with the slots ``full_count_plan`` draws into. A blank new digit leaves
    the slot cleared. ``old_count=None`` means nothing is displayed yet.
    """

    new_digits = _digits(new_count, layout.max_digits)
    old_digits = "" if old_count is None else _digits(old_count, layout.max_digits)

    width = max(len(new_digits), len(old_digits))
    new_digits = new_digits.ljust(width, BLANK)
    old_digits = old_digits.ljust(width, BLANK)

    plan: List[RenderOp] = []
    for index, (new_digit, old_digit) in enumerate(zip(new_digits, old_digits)):
        if new_digit == old_digit:
            continue
        plan.append(FillOp(slot_footprint(layout, index)))
        if new_digit == BLANK:
            continue
        op = _clone_digit(layout, new_digit, index)
        if op is not None:
            plan.append(op)
    return plan


def image_plan(
    grid: Sequence[Sequence[RGB]], resolver: ColorResolver, layout: DisplayConfig
) -> Dict[str, List[SetBlockOp]]:
    """Group one ``setblock`` per pixel by wool label, in first-seen order.

    The image is mirrored horizontally and laid flat: column ``x`` maps to
    ``corner.x + (width - 1 - x)`` and row ``y`` to ``corner.z - y``.
    """

    corner = layout.image_corner
    groups: Dict[str, List[SetBlockOp]] = {}
    for row_index, row in enumerate(grid):
        width = len(row)
        for col_index, (r, g, b) in enumerate(row):
            label = resolver.nearest(r, g, b)
            position = BlockPos(
                corner.x + (width - 1 - col_index),
                corner.y,
                corner.z - row_index,
            )
            groups.setdefault(label, []).append(SetBlockOp(position, label))

    LOGGER.debug(
        "Planned %d block placements in %d colour groups",
        sum(len(ops) for ops in groups.values()),
        len(groups),
    )
    return groups


def clear_plan(regions: Iterable[Region]) -> List[RenderOp]:
    return [FillOp(region) for region in regions]
