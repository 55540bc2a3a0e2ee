from __future__ import annotations

from stickerbot.application.sticker_compositor import CompositionLimits, StickerCompositor
from stickerbot.domain.background_remover import BackgroundRemover
from stickerbot.domain.errors import DecodeError
from stickerbot.domain.removal_strategy import RemovalStrategy, strategy_from_settings
from stickerbot.infrastructure.image_codec import decode_raster, encode_png
from stickerbot.infrastructure.pixel_background_removers import build_remover


class MakeStickerUseCase:
    def __init__(self, remover: BackgroundRemover, compositor: StickerCompositor) -> None:
        self._remover = remover
        self._compositor = compositor

    def execute(self, image_bytes: bytes) -> bytes:
        """Return WebP sticker bytes for ``image_bytes``."""
        if not image_bytes:
            raise DecodeError("Image payload is empty")

        raster = decode_raster(image_bytes)
        raster = self._remover.remove(raster)
        return self._compositor.compose(raster)

    def remove_background(self, image_bytes: bytes) -> bytes:
        """Return the cut-out as PNG, without resizing or recompression."""
        if not image_bytes:
            raise DecodeError("Image payload is empty")

        raster = self._remover.remove(decode_raster(image_bytes))
        return encode_png(raster)


def build_use_case(settings, strategy: RemovalStrategy | None = None) -> MakeStickerUseCase:
    remover = build_remover(strategy or strategy_from_settings(settings))
    return MakeStickerUseCase(remover, StickerCompositor(CompositionLimits.from_settings(settings)))
