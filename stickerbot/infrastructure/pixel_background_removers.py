from __future__ import annotations

import logging

import numpy as np
from scipy import ndimage

from stickerbot.domain.background_remover import BackgroundRemover
from stickerbot.domain.color import Color, average_color, distance_plane, hsl_planes
from stickerbot.domain.raster import RasterImage
from stickerbot.domain.removal_strategy import (
    Corner,
    CornerFloodFill,
    GlobalMatch,
    HueBand,
    KeySample,
    RemovalStrategy,
)

logger = logging.getLogger("stickers.removal")

_EIGHT_NEIGHBOURS = np.ones((3, 3), dtype=bool)


def sample_key_color(image: RasterImage, sample: KeySample) -> Color:
    rows = min(sample.size, image.height)
    cols = min(sample.size, image.width)
    if sample.corner in (Corner.TOP_LEFT, Corner.TOP_RIGHT):
        row_slice = slice(0, rows)
    else:
        row_slice = slice(image.height - rows, image.height)
    if sample.corner in (Corner.TOP_LEFT, Corner.BOTTOM_LEFT):
        col_slice = slice(0, cols)
    else:
        col_slice = slice(image.width - cols, image.width)
    return average_color(image.rgb[row_slice, col_slice])


def border_connected(mask: np.ndarray) -> np.ndarray:
    """Cells of ``mask`` reachable from the image border through 4-connected ``mask`` cells."""
    labels, count = ndimage.label(mask)
    if count == 0:
        return np.zeros_like(mask, dtype=bool)
    edge_labels = np.concatenate((labels[0, :], labels[-1, :], labels[:, 0], labels[:, -1]))
    touching = np.unique(edge_labels[edge_labels > 0])
    return np.isin(labels, touching)


def erode_alpha(image: RasterImage) -> RasterImage:
    """Clear every opaque pixel that has a transparent 8-neighbour. Single pass."""
    opaque = image.alpha > 0
    kept = ndimage.binary_erosion(opaque, structure=_EIGHT_NEIGHBOURS, border_value=1)
    image.alpha[opaque & ~kept] = 0
    return image


class FloodFillBackgroundRemover(BackgroundRemover):
    def __init__(self, strategy: CornerFloodFill) -> None:
        self._strategy = strategy

    def remove(self, image: RasterImage) -> RasterImage:
        key = sample_key_color(image, self._strategy.sample)
        candidates = distance_plane(image.rgb, key) <= self._strategy.tolerance
        background = border_connected(candidates)
        image.alpha[background] = 0
        logger.debug(
            "flood fill key=%s tolerance=%s removed=%d",
            tuple(key),
            self._strategy.tolerance,
            int(background.sum()),
        )
        if self._strategy.erode:
            erode_alpha(image)
        return image


class GlobalMatchBackgroundRemover(BackgroundRemover):
    def __init__(self, strategy: GlobalMatch) -> None:
        self._strategy = strategy

    def remove(self, image: RasterImage) -> RasterImage:
        key = sample_key_color(image, self._strategy.sample)
        background = distance_plane(image.rgb, key) <= self._strategy.tolerance
        image.alpha[background] = 0
        logger.debug("global match key=%s removed=%d", tuple(key), int(background.sum()))
        return image


class HueBandBackgroundRemover(BackgroundRemover):
    def __init__(self, strategy: HueBand) -> None:
        self._strategy = strategy

    def classify(self, image: RasterImage) -> np.ndarray:
        hue, saturation, lightness = hsl_planes(image.rgb)
        low, high = self._strategy.hue
        if low <= high:
            in_band = (hue >= low) & (hue <= high)
        else:
            in_band = (hue >= low) | (hue <= high)
        s_low, s_high = self._strategy.saturation
        l_low, l_high = self._strategy.lightness
        return (
            in_band
            & (saturation >= s_low)
            & (saturation <= s_high)
            & (lightness >= l_low)
            & (lightness <= l_high)
        )

    def remove(self, image: RasterImage) -> RasterImage:
        background = self.classify(image)
        image.alpha[background] = 0
        logger.debug("hue band %s removed=%d", self._strategy.hue, int(background.sum()))
        if self._strategy.erode:
            erode_alpha(image)
        return image


def build_remover(strategy: RemovalStrategy) -> BackgroundRemover:
    if isinstance(strategy, CornerFloodFill):
        return FloodFillBackgroundRemover(strategy)
    if isinstance(strategy, GlobalMatch):
        return GlobalMatchBackgroundRemover(strategy)
    if isinstance(strategy, HueBand):
        return HueBandBackgroundRemover(strategy)
    raise TypeError(f"Unsupported removal strategy: {type(strategy).__name__}")
