from __future__ import annotations


class StickerError(Exception):
    pass


class DecodeError(StickerError, ValueError):
    """Input bytes could not be decoded into a raster image."""


class CompressionLimitError(StickerError):
    def __init__(self, max_bytes: int, size: int, quality: int) -> None:
        super().__init__(
            f"Sticker is {size} bytes at quality {quality}, limit is {max_bytes} bytes"
        )
        self.max_bytes = max_bytes
        self.size = size
        self.quality = quality


class StickerTimeoutError(StickerError):
    def __init__(self, index: int, timeout_seconds: float) -> None:
        super().__init__(f"Timeout exceeded: {timeout_seconds:g}s for image #{index + 1}")
        self.index = index
        self.timeout_seconds = timeout_seconds
