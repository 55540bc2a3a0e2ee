from __future__ import annotations

import time

import pytest

from stickerbot.application.sticker_batch import StickerBatchProcessor
from stickerbot.domain.errors import StickerTimeoutError


def _make_sticker(image_bytes: bytes) -> bytes:
    if image_bytes == b'bad':
        raise ValueError('cannot decode')
    if image_bytes == b'slow':
        time.sleep(1.0)
    return b'sticker:' + image_bytes


def test_all_images_delivered_in_order() -> None:
    delivered = []
    processor = StickerBatchProcessor(_make_sticker, timeout_seconds=5)

    report = processor.run([b'a', b'b', b'c'], deliver=lambda index, payload: delivered.append((index, payload)))

    assert delivered == [(0, b'sticker:a'), (1, b'sticker:b'), (2, b'sticker:c')]
    assert report.delivered == [0, 1, 2]
    assert report.skipped == []
    assert report.total == 3


def test_failing_image_is_skipped_and_batch_continues() -> None:
    delivered = []
    skipped = []
    processor = StickerBatchProcessor(_make_sticker, timeout_seconds=5)

    report = processor.run(
        [b'a', b'bad', b'c'],
        deliver=lambda index, payload: delivered.append(index),
        on_skip=lambda index, exc: skipped.append((index, type(exc))),
    )

    assert delivered == [0, 2]
    assert skipped == [(1, ValueError)]
    assert report.errors[1] == 'cannot decode'


def test_slow_image_times_out() -> None:
    delivered = []
    errors = []
    processor = StickerBatchProcessor(_make_sticker, timeout_seconds=0.1)

    started = time.monotonic()
    report = processor.run(
        [b'slow', b'ok'],
        deliver=lambda index, payload: delivered.append(payload),
        on_skip=lambda index, exc: errors.append(exc),
    )

    assert time.monotonic() - started < 0.9
    assert delivered == [b'sticker:ok']
    assert report.skipped == [0]
    assert isinstance(errors[0], StickerTimeoutError)
    assert 'image #1' in str(errors[0])


def test_delivery_failure_counts_as_skip() -> None:
    def deliver(index: int, payload: bytes) -> None:
        if index == 0:
            raise RuntimeError('chat unavailable')

    report = StickerBatchProcessor(_make_sticker, timeout_seconds=5).run([b'a', b'b'], deliver=deliver)

    assert report.skipped == [0]
    assert report.delivered == [1]


def test_load_maps_sources_to_bytes() -> None:
    store = {'https://img/1': b'one', 'https://img/2': b'two'}
    delivered = []
    processor = StickerBatchProcessor(_make_sticker, timeout_seconds=5, load=store.__getitem__)

    processor.run(list(store), deliver=lambda index, payload: delivered.append(payload))

    assert delivered == [b'sticker:one', b'sticker:two']


def test_timeout_must_be_positive() -> None:
    with pytest.raises(ValueError):
        StickerBatchProcessor(_make_sticker, timeout_seconds=0)
