from __future__ import annotations

from typing import Callable

import numpy as np
from PIL import Image

Pixel = tuple[int, int, int, int]
Box = tuple[int, int, int, int]


class RasterImage:
    """Mutable RGBA pixel grid with fixed dimensions.

    Pixels live in an ``(height, width, 4)`` uint8 array. Removers work on the
    ``rgb`` and ``alpha`` views directly; callers outside the pipeline should
    stick to ``get_pixel``/``set_pixel``/``map_region``.
    """

    def __init__(self, pixels: np.ndarray) -> None:
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected an (height, width, 4) array, got {pixels.shape}")
        if pixels.shape[0] <= 0 or pixels.shape[1] <= 0:
            raise ValueError("Image dimensions must be positive")
        self._pixels = np.ascontiguousarray(pixels, dtype=np.uint8)

    @classmethod
    def new(cls, width: int, height: int, fill: Pixel = (0, 0, 0, 255)) -> RasterImage:
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = fill
        return cls(pixels)

    @classmethod
    def from_pil(cls, image: Image.Image) -> RasterImage:
        return cls(np.array(image.convert("RGBA"), dtype=np.uint8))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self._pixels)

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def rgb(self) -> np.ndarray:
        return self._pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self._pixels[:, :, 3]

    def get_pixel(self, x: int, y: int) -> Pixel:
        r, g, b, a = self._pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def set_pixel(self, x: int, y: int, value: Pixel) -> None:
        self._pixels[y, x] = value

    def map_region(self, fn: Callable[[Pixel], Pixel], box: Box | None = None) -> None:
        """Replace every pixel inside ``box`` (left, top, right, bottom) with ``fn(pixel)``."""
        left, top, right, bottom = box or (0, 0, self.width, self.height)
        left, right = max(0, left), min(self.width, right)
        top, bottom = max(0, top), min(self.height, bottom)
        for y in range(top, bottom):
            for x in range(left, right):
                self.set_pixel(x, y, fn(self.get_pixel(x, y)))

    def count_transparent(self) -> int:
        return int(np.count_nonzero(self.alpha == 0))

    def copy(self) -> RasterImage:
        return RasterImage(self._pixels.copy())

    def __repr__(self) -> str:
        return f"RasterImage(width={self.width}, height={self.height})"
