from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union


class Corner(str, Enum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


@dataclass(frozen=True)
class KeySample:
    """Where the key color is read from: a ``size`` x ``size`` block at ``corner``."""

    size: int = 1
    corner: Corner = Corner.TOP_LEFT

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError("sample size must be at least 1")


def _check_tolerance(tolerance: float) -> None:
    if tolerance < 0:
        raise ValueError("tolerance must be non-negative")


def _check_range(name: str, bounds: tuple[float, float], upper: float) -> None:
    low, high = bounds
    if not 0 <= low <= high <= upper:
        raise ValueError(f"{name} range must satisfy 0 <= low <= high <= {upper}")


@dataclass(frozen=True)
class CornerFloodFill:
    tolerance: float = 30.0
    sample: KeySample = field(default_factory=KeySample)
    erode: bool = False

    def __post_init__(self) -> None:
        _check_tolerance(self.tolerance)


@dataclass(frozen=True)
class GlobalMatch:
    tolerance: float = 30.0
    sample: KeySample = field(default_factory=KeySample)

    def __post_init__(self) -> None:
        _check_tolerance(self.tolerance)


@dataclass(frozen=True)
class HueBand:
    """Fixed-hue backdrop. A hue band with low > high wraps through 0 degrees."""

    hue: tuple[float, float] = (70.0, 160.0)
    saturation: tuple[float, float] = (0.25, 1.0)
    lightness: tuple[float, float] = (0.15, 0.85)
    erode: bool = False

    def __post_init__(self) -> None:
        low, high = self.hue
        if not (0 <= low <= 360 and 0 <= high <= 360):
            raise ValueError("hue bounds must lie within 0-360 degrees")
        _check_range("saturation", self.saturation, 1.0)
        _check_range("lightness", self.lightness, 1.0)


RemovalStrategy = Union[CornerFloodFill, GlobalMatch, HueBand]

GREEN_SCREEN = HueBand(hue=(70.0, 160.0))
GREEN_SCREEN_NARROW = HueBand(hue=(85.0, 145.0))
PURPLE = HueBand(hue=(260.0, 300.0))

HUE_PRESETS: dict[str, HueBand] = {
    "green": GREEN_SCREEN,
    "green-narrow": GREEN_SCREEN_NARROW,
    "purple": PURPLE,
}


def strategy_from_settings(settings) -> RemovalStrategy:
    kind = settings.sticker_strategy.strip().lower().replace("-", "_")
    sample = KeySample(size=settings.sticker_sample_size, corner=Corner(settings.sticker_sample_corner))

    if kind == "flood_fill":
        return CornerFloodFill(
            tolerance=settings.sticker_tolerance,
            sample=sample,
            erode=settings.sticker_erode,
        )
    if kind == "global_match":
        return GlobalMatch(tolerance=settings.sticker_tolerance, sample=sample)
    if kind == "hue_band":
        try:
            preset = HUE_PRESETS[settings.sticker_hue_preset]
        except KeyError as exc:
            raise ValueError(f"Unknown hue preset: {settings.sticker_hue_preset}") from exc
        return HueBand(
            hue=preset.hue,
            saturation=preset.saturation,
            lightness=preset.lightness,
            erode=settings.sticker_erode,
        )
    raise ValueError(f"Unknown removal strategy: {settings.sticker_strategy}")


def with_overrides(
    strategy: RemovalStrategy,
    tolerance: float | None = None,
    erode: bool | None = None,
) -> RemovalStrategy:
    """Copy ``strategy`` with per-request overrides, ignoring fields the variant lacks."""
    changes: dict[str, float | bool] = {}
    if tolerance is not None and hasattr(strategy, "tolerance"):
        changes["tolerance"] = tolerance
    if erode is not None and hasattr(strategy, "erode"):
        changes["erode"] = erode
    return replace(strategy, **changes) if changes else strategy
