from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np


class Color(NamedTuple):
    r: int
    g: int
    b: int


def euclidean_distance(a: Color | tuple[int, ...], b: Color | tuple[int, ...]) -> float:
    return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2)


def distance_plane(rgb: np.ndarray, key: Color) -> np.ndarray:
    """Euclidean RGB distance of every pixel in ``rgb`` to ``key``, as float32."""
    diff = rgb.astype(np.float32) - np.asarray(key, dtype=np.float32)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def average_color(rgb: np.ndarray) -> Color:
    flat = rgb.reshape(-1, 3).astype(np.float64)
    mean = flat.mean(axis=0)
    return Color(*(int(round(channel)) for channel in mean))


def rgb_to_hsl(r: int, g: int, b: int) -> tuple[float, float, float]:
    """Return (hue in degrees 0-360, saturation 0-1, lightness 0-1)."""
    rn, gn, bn = r / 255.0, g / 255.0, b / 255.0
    high, low = max(rn, gn, bn), min(rn, gn, bn)
    lightness = (high + low) / 2.0
    delta = high - low
    if delta == 0:
        return 0.0, 0.0, lightness

    if lightness <= 0.5:
        saturation = delta / (high + low)
    else:
        saturation = delta / (2.0 - high - low)

    if high == rn:
        hue = ((gn - bn) / delta) % 6
    elif high == gn:
        hue = (bn - rn) / delta + 2
    else:
        hue = (rn - gn) / delta + 4
    return hue * 60.0, saturation, lightness


def hsl_planes(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorised ``rgb_to_hsl`` over an (..., 3) uint8 array."""
    norm = rgb.astype(np.float32) / 255.0
    r, g, b = norm[..., 0], norm[..., 1], norm[..., 2]
    high = norm.max(axis=-1)
    low = norm.min(axis=-1)
    delta = high - low
    lightness = (high + low) / 2.0

    chromatic = delta > 0
    safe_delta = np.where(chromatic, delta, 1.0)
    dark = np.where(high + low > 0, high + low, 1.0)
    bright = np.where(2.0 - high - low > 0, 2.0 - high - low, 1.0)
    saturation = np.where(lightness <= 0.5, delta / dark, delta / bright)
    saturation = np.where(chromatic, saturation, 0.0)

    hue = np.where(
        high == r,
        np.mod((g - b) / safe_delta, 6.0),
        np.where(high == g, (b - r) / safe_delta + 2.0, (r - g) / safe_delta + 4.0),
    )
    hue = np.where(chromatic, hue * 60.0, 0.0)
    return hue, saturation, lightness
