"""World-mutation primitives emitted by the render planner."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class BlockPos:
    x: int
    y: int
    z: int

    @classmethod
    def parse(cls, value: str) -> "BlockPos":
        """Parse ``"x y z"`` into a position."""

        parts = value.split()
        if len(parts) != 3:
            raise ValueError(f"Expected 'x y z', got {value!r}")
        x, y, z = (int(part) for part in parts)
        return cls(x, y, z)

    def offset(self, dx: int = 0, dy: int = 0, dz: int = 0) -> "BlockPos":
        return BlockPos(self.x + dx, self.y + dy, self.z + dz)

    def __str__(self) -> str:
        return f"{self.x} {self.y} {self.z}"


@dataclass(frozen=True, slots=True)
class Region:
    """Two opposite corners of a box, in the order they were written."""

    start: BlockPos
    end: BlockPos

    @classmethod
    def parse(cls, value: str) -> "Region":
        """Parse ``"x1 y1 z1 x2 y2 z2"`` into a region."""

        parts = value.split()
        if len(parts) != 6:
            raise ValueError(f"Expected 'x1 y1 z1 x2 y2 z2', got {value!r}")
        return cls(
            BlockPos.parse(" ".join(parts[:3])),
            BlockPos.parse(" ".join(parts[3:])),
        )

    @property
    def minimum(self) -> BlockPos:
        return BlockPos(
            min(self.start.x, self.end.x),
            min(self.start.y, self.end.y),
            min(self.start.z, self.end.z),
        )

    @property
    def size(self) -> tuple[int, int, int]:
        """Extent along each axis, minus one (the game's inclusive corners)."""

        return (
            abs(self.start.x - self.end.x),
            abs(self.start.y - self.end.y),
            abs(self.start.z - self.end.z),
        )

    def __str__(self) -> str:
        return f"{self.start} {self.end}"


@dataclass(frozen=True, slots=True)
class CloneOp:
    source: Region
    destination: BlockPos

    def to_command(self) -> str:
        return f"clone {self.source} {self.destination}"


@dataclass(frozen=True, slots=True)
class FillOp:
    region: Region
    block: str = "air"

    def to_command(self) -> str:
        return f"fill {self.region} {self.block}"


@dataclass(frozen=True, slots=True)
class SetBlockOp:
    position: BlockPos
    block: str

    def to_command(self) -> str:
        return f"setblock {self.position} {self.block}"


RenderOp = Union[CloneOp, FillOp, SetBlockOp]


def to_commands(plan: list[RenderOp]) -> list[str]:
    return [op.to_command() for op in plan]
