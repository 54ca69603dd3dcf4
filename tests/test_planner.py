import pytest

from subcount_bridge.config import DisplayConfig
from subcount_bridge.render import (
    BlockPos,
    CloneOp,
    ColorResolver,
    FillOp,
    Region,
    SetBlockOp,
    clear_plan,
    diff_count_plan,
    full_count_plan,
    image_plan,
    to_commands,
)
from subcount_bridge.render.planner import slot_footprint


@pytest.fixture
def layout() -> DisplayConfig:
    return DisplayConfig()


def test_full_count_plan_single_digit(layout: DisplayConfig) -> None:
    plan = full_count_plan(7, layout)

    assert plan == [
        CloneOp(source=Region.parse("-22 -64 46 -24 -64 42"), destination=BlockPos(1, -60, 42))
    ]
    assert to_commands(plan) == ["clone -22 -64 46 -24 -64 42 1 -60 42"]


def test_full_count_plan_places_digits_along_negative_x(layout: DisplayConfig) -> None:
    plan = full_count_plan(1024, layout)

    destinations = [op.destination for op in plan]
    assert destinations == [
        BlockPos(1, -60, 42),
        BlockPos(-3, -60, 42),
        BlockPos(-7, -60, 42),
        BlockPos(-11, -60, 42),
    ]
    assert [op.source for op in plan] == [
        layout.digit_templates["1"],
        layout.digit_templates["0"],
        layout.digit_templates["2"],
        layout.digit_templates["4"],
    ]


def test_full_count_plan_caps_digits(layout: DisplayConfig) -> None:
    assert len(full_count_plan(123_456_789_012, layout)) == layout.max_digits


def test_full_count_plan_skips_missing_template(layout: DisplayConfig) -> None:
    del layout.digit_templates["5"]

    plan = full_count_plan(515, layout)

    assert [op.destination for op in plan] == [BlockPos(-3, -60, 42)]


def test_negative_count_rejected(layout: DisplayConfig) -> None:
    with pytest.raises(ValueError):
        full_count_plan(-1, layout)


def test_diff_of_equal_counts_is_empty(layout: DisplayConfig) -> None:
    assert diff_count_plan(4821, 4821, layout) == []


def test_diff_changes_only_differing_slots(layout: DisplayConfig) -> None:
    plan = diff_count_plan(1250, 1249, layout)

    assert plan == [
        FillOp(slot_footprint(layout, 2)),
        CloneOp(layout.digit_templates["5"], BlockPos(-7, -60, 42)),
        FillOp(slot_footprint(layout, 3)),
        CloneOp(layout.digit_templates["0"], BlockPos(-11, -60, 42)),
    ]


def test_diff_growing_number_fills_new_slot(layout: DisplayConfig) -> None:
    plan = diff_count_plan(123, 99, layout)

    fills = [op for op in plan if isinstance(op, FillOp)]
    clones = [op for op in plan if isinstance(op, CloneOp)]
    assert len(fills) == 3
    assert [op.source for op in clones] == [
        layout.digit_templates["1"],
        layout.digit_templates["2"],
        layout.digit_templates["3"],
    ]
    assert [op.destination for op in clones] == [
        BlockPos(1, -60, 42),
        BlockPos(-3, -60, 42),
        BlockPos(-7, -60, 42),
    ]


def test_diff_shrinking_number_clears_trailing_slot(layout: DisplayConfig) -> None:
    plan = diff_count_plan(99, 100, layout)

    assert plan == [
        FillOp(slot_footprint(layout, 0)),
        CloneOp(layout.digit_templates["9"], BlockPos(1, -60, 42)),
        FillOp(slot_footprint(layout, 1)),
        CloneOp(layout.digit_templates["9"], BlockPos(-3, -60, 42)),
        FillOp(slot_footprint(layout, 2)),
    ]


def test_diff_against_nothing_displayed(layout: DisplayConfig) -> None:
    plan = diff_count_plan(42, None, layout)

    assert [type(op) for op in plan] == [FillOp, CloneOp, FillOp, CloneOp]


def test_slot_footprint_covers_template(layout: DisplayConfig) -> None:
    footprint = slot_footprint(layout, 1)

    assert footprint == Region(BlockPos(-3, -60, 42), BlockPos(-1, -60, 46))
    assert to_commands([FillOp(footprint)]) == ["fill -3 -60 42 -1 -60 46 air"]


def test_image_plan_mirrors_columns_and_groups_by_label(layout: DisplayConfig) -> None:
    red = (160, 39, 34)
    white = (255, 255, 255)
    grid = [
        [red, white],
        [white, red],
    ]

    groups = image_plan(grid, ColorResolver(), layout)

    assert list(groups) == ["red_wool", "white_wool"]
    assert groups["red_wool"] == [
        SetBlockOp(BlockPos(-30, -60, 82), "red_wool"),
        SetBlockOp(BlockPos(-31, -60, 81), "red_wool"),
    ]
    assert groups["white_wool"] == [
        SetBlockOp(BlockPos(-31, -60, 82), "white_wool"),
        SetBlockOp(BlockPos(-30, -60, 81), "white_wool"),
    ]


def test_image_plan_resolves_each_colour_once(layout: DisplayConfig) -> None:
    resolver = ColorResolver()
    grid = [[(10, 10, 10)] * 35 for _ in range(35)]

    groups = image_plan(grid, resolver, layout)

    assert list(groups) == ["black_wool"]
    assert len(groups["black_wool"]) == 35 * 35
    assert resolver.scan_count == 1


def test_clear_plan_fills_each_region_with_air(layout: DisplayConfig) -> None:
    assert to_commands(clear_plan(layout.clear_areas)) == [
        "fill 3 -60 42 -31 -60 46 air",
        "fill -31 -60 82 3 -59 48 air",
    ]
