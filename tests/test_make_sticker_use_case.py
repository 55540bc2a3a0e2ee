from __future__ import annotations

import io
from types import SimpleNamespace

import numpy as np
from PIL import Image, ImageDraw
import pytest

from stickerbot.application.make_sticker_use_case import MakeStickerUseCase, build_use_case
from stickerbot.application.sticker_compositor import CompositionLimits, StickerCompositor
from stickerbot.domain.errors import DecodeError
from stickerbot.domain.removal_strategy import (
    CornerFloodFill,
    GlobalMatch,
    HueBand,
    KeySample,
    strategy_from_settings,
    with_overrides,
)
from stickerbot.infrastructure.image_codec import decode_raster
from stickerbot.infrastructure.pixel_background_removers import (
    FloodFillBackgroundRemover,
    GlobalMatchBackgroundRemover,
)


def _red_on_green_png() -> bytes:
    img = Image.new('RGB', (600, 400), (0, 255, 0))
    draw = ImageDraw.Draw(img)
    draw.rectangle((200, 100, 399, 299), fill=(255, 0, 0))
    out = io.BytesIO()
    img.save(out, format='PNG')
    return out.getvalue()


def _settings(**overrides) -> SimpleNamespace:
    values = dict(
        sticker_strategy='flood_fill',
        sticker_tolerance=30.0,
        sticker_sample_size=5,
        sticker_sample_corner='top-left',
        sticker_erode=False,
        sticker_hue_preset='green',
        sticker_max_dimension=512,
        sticker_max_bytes=512 * 1024,
        sticker_quality_step=10,
        sticker_quality_floor=10,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_round_trip_red_subject_on_green_screen() -> None:
    strategy = CornerFloodFill(tolerance=30, sample=KeySample(size=5))
    raster = FloodFillBackgroundRemover(strategy).remove(decode_raster(_red_on_green_png()))

    assert raster.alpha[:100, :].max() == 0
    assert raster.alpha[:, :200].max() == 0
    assert raster.alpha[300:, :].max() == 0
    assert raster.alpha[100:300, 200:400].min() == 255

    use_case = MakeStickerUseCase(FloodFillBackgroundRemover(strategy), StickerCompositor())
    sticker = use_case.execute(_red_on_green_png())

    assert len(sticker) <= 512 * 1024
    with Image.open(io.BytesIO(sticker)) as image:
        assert image.format == 'WEBP'
        assert image.size == (512, 341)
        rgba = image.convert('RGBA')
        assert rgba.getpixel((5, 5))[3] == 0
        assert rgba.getpixel((256, 170))[3] == 255


class RecordingCompositor(StickerCompositor):
    def __init__(self, limits: CompositionLimits) -> None:
        super().__init__(limits)
        self.qualities: list[int] = []

    def encode(self, image: Image.Image, quality: int) -> bytes:
        self.qualities.append(quality)
        return super().encode(image, quality)


def _noise_png(size: int = 256) -> bytes:
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8)
    out = io.BytesIO()
    Image.fromarray(pixels).save(out, format='PNG')
    return out.getvalue()


def test_round_trip_retries_lower_quality_when_first_encode_is_too_big() -> None:
    remover = GlobalMatchBackgroundRemover(GlobalMatch(tolerance=0))
    cutout = remover.remove(decode_raster(_noise_png())).to_pil()
    encoder = StickerCompositor()
    best, worst = len(encoder.encode(cutout, 100)), len(encoder.encode(cutout, 10))
    assert worst < best

    max_bytes = (best + worst) // 2
    compositor = RecordingCompositor(CompositionLimits(max_bytes=max_bytes))
    sticker = MakeStickerUseCase(remover, compositor).execute(_noise_png())

    assert len(sticker) <= max_bytes
    assert len(compositor.qualities) > 1
    assert compositor.qualities[:2] == [100, 90]
    with Image.open(io.BytesIO(sticker)) as image:
        assert image.format == 'WEBP'
        assert image.size == (256, 256)


def test_remove_background_returns_full_size_png() -> None:
    use_case = build_use_case(_settings())
    cutout = use_case.remove_background(_red_on_green_png())

    with Image.open(io.BytesIO(cutout)) as image:
        assert image.format == 'PNG'
        assert image.size == (600, 400)
        assert image.getpixel((0, 0))[3] == 0


@pytest.mark.parametrize('payload', [b'', b'definitely not an image'])
def test_execute_raises_decode_error(payload: bytes) -> None:
    use_case = build_use_case(_settings())
    with pytest.raises(DecodeError):
        use_case.execute(payload)


def test_strategy_from_settings_variants() -> None:
    flood = strategy_from_settings(_settings(sticker_erode=True))
    assert flood == CornerFloodFill(tolerance=30.0, sample=KeySample(size=5), erode=True)

    assert isinstance(strategy_from_settings(_settings(sticker_strategy='global-match')), GlobalMatch)

    band = strategy_from_settings(_settings(sticker_strategy='hue_band', sticker_hue_preset='purple'))
    assert isinstance(band, HueBand)
    assert band.hue == (260.0, 300.0)

    with pytest.raises(ValueError):
        strategy_from_settings(_settings(sticker_strategy='magic'))
    with pytest.raises(ValueError):
        strategy_from_settings(_settings(sticker_strategy='hue_band', sticker_hue_preset='teal'))


def test_with_overrides_only_touches_known_fields() -> None:
    flood = with_overrides(CornerFloodFill(), tolerance=12.0, erode=True)
    assert flood.tolerance == 12.0
    assert flood.erode is True

    match = with_overrides(GlobalMatch(), tolerance=5.0, erode=True)
    assert match == GlobalMatch(tolerance=5.0)

    band = HueBand()
    assert with_overrides(band) is band


def test_composition_limits_from_settings() -> None:
    limits = CompositionLimits.from_settings(_settings(sticker_max_bytes=300 * 1024))
    assert limits.max_bytes == 300 * 1024
    assert limits.max_dimension == 512
