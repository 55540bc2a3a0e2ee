from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Generic, Sequence, TypeVar

from stickerbot.domain.errors import StickerTimeoutError

logger = logging.getLogger("stickers.batch")

Source = TypeVar("Source")


@dataclass
class BatchReport:
    delivered: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    errors: dict[int, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.delivered) + len(self.skipped)


class StickerBatchProcessor(Generic[Source]):
    """Turn a job's images into stickers one at a time.

    ``load`` maps a source (URL, raw bytes, ...) to image bytes and ``make_sticker``
    runs the pipeline. Both run on a worker thread raced against
    ``timeout_seconds``; a slow or failing image is skipped and the rest of the
    batch carries on. A timed-out thread is abandoned, not interrupted.
    """

    def __init__(
        self,
        make_sticker: Callable[[bytes], bytes],
        timeout_seconds: float,
        load: Callable[[Source], bytes] | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._make_sticker = make_sticker
        self._timeout_seconds = timeout_seconds
        self._load = load

    def _produce(self, source: Source) -> bytes:
        image_bytes = self._load(source) if self._load else source
        return self._make_sticker(image_bytes)  # type: ignore[arg-type]

    def _run_with_deadline(self, index: int, source: Source) -> bytes:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"sticker-{index + 1}")
        future = executor.submit(self._produce, source)
        try:
            return future.result(timeout=self._timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            raise StickerTimeoutError(index, self._timeout_seconds) from exc
        finally:
            executor.shutdown(wait=False)

    def run(
        self,
        sources: Sequence[Source],
        deliver: Callable[[int, bytes], None],
        on_skip: Callable[[int, Exception], None] | None = None,
    ) -> BatchReport:
        report = BatchReport()
        for index, source in enumerate(sources):
            try:
                payload = self._run_with_deadline(index, source)
                deliver(index, payload)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Error or timeout during image #%d: %s", index + 1, exc)
                report.skipped.append(index)
                report.errors[index] = str(exc)
                if on_skip:
                    on_skip(index, exc)
                continue
            report.delivered.append(index)
        return report
