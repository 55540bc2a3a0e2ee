from __future__ import annotations

from abc import ABC, abstractmethod

from stickerbot.domain.raster import RasterImage


class BackgroundRemover(ABC):
    @abstractmethod
    def remove(self, image: RasterImage) -> RasterImage:
        """Zero the alpha of background pixels in place and return the same image."""
