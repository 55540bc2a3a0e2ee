from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image

from stickerbot.domain.errors import CompressionLimitError
from stickerbot.domain.raster import RasterImage

logger = logging.getLogger("stickers.compositor")


@dataclass(frozen=True)
class CompositionLimits:
    max_dimension: int = 512
    max_bytes: int = 512 * 1024
    initial_quality: int = 100
    quality_step: int = 10
    quality_floor: int = 10

    def __post_init__(self) -> None:
        if self.max_dimension < 1 or self.max_bytes < 1:
            raise ValueError("max_dimension and max_bytes must be positive")
        if self.quality_step < 1:
            raise ValueError("quality_step must be positive")
        if not 0 <= self.quality_floor <= self.initial_quality <= 100:
            raise ValueError("quality bounds must satisfy 0 <= floor <= initial <= 100")

    @classmethod
    def from_settings(cls, settings) -> CompositionLimits:
        return cls(
            max_dimension=settings.sticker_max_dimension,
            max_bytes=settings.sticker_max_bytes,
            quality_step=settings.sticker_quality_step,
            quality_floor=settings.sticker_quality_floor,
        )


def fit_within(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    longest = max(width, height)
    if longest <= max_dimension:
        return width, height
    scale = max_dimension / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


class StickerCompositor:
    """Resize a cut-out and encode it as WebP within the byte budget."""

    def __init__(self, limits: CompositionLimits | None = None) -> None:
        self._limits = limits or CompositionLimits()

    @property
    def limits(self) -> CompositionLimits:
        return self._limits

    def resize(self, image: Image.Image) -> Image.Image:
        target = fit_within(image.width, image.height, self._limits.max_dimension)
        if target == image.size:
            return image
        # Pillow premultiplies RGBA for non-nearest filters, so edges keep their colour.
        return image.resize(target, Image.Resampling.LANCZOS)

    def encode(self, image: Image.Image, quality: int) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="WEBP", quality=quality, method=6, exact=False)
        return buffer.getvalue()

    def compose(self, raster: RasterImage) -> bytes:
        limits = self._limits
        source = self.resize(raster.to_pil())
        quality = limits.initial_quality

        while True:
            payload = self.encode(source, quality)
            if len(payload) <= limits.max_bytes:
                logger.debug(
                    "sticker %dx%d encoded at quality %d (%d bytes)",
                    source.width,
                    source.height,
                    quality,
                    len(payload),
                )
                return payload

            next_quality = quality - limits.quality_step
            if next_quality < limits.quality_floor:
                raise CompressionLimitError(limits.max_bytes, len(payload), quality)
            logger.info(
                "sticker is %d bytes at quality %d, retrying at %d",
                len(payload),
                quality,
                next_quality,
            )
            quality = next_quality
