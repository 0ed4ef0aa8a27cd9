from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ResizeOp:
    width: int
    height: int


@dataclass(frozen=True)
class RotateOp:
    angle: float  # degrees, positive is clockwise


@dataclass(frozen=True)
class CropOp:
    origin_x: int
    origin_y: int
    width: int
    height: int


@dataclass(frozen=True)
class FlipOp:
    vertical: bool  # False flips horizontally


Operation = ResizeOp | RotateOp | CropOp | FlipOp


@dataclass(frozen=True)
class ManipulationResult:
    """What an ImageOps adapter hands back: a fresh file and its dimensions."""

    uri: str
    width: int
    height: int
