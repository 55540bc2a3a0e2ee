from __future__ import annotations

import io
import logging
import traceback
import zipfile
from pathlib import Path

from rq import get_current_job

from stickerbot.application.make_sticker_use_case import MakeStickerUseCase, build_use_case
from stickerbot.application.sticker_batch import StickerBatchProcessor
from stickerbot.config import settings
from stickerbot.domain.removal_strategy import strategy_from_settings, with_overrides
from stickerbot.infrastructure.metrics import metrics
from stickerbot.infrastructure.object_storage import S3ObjectStorage

logger = logging.getLogger("stickers.jobs")

storage = S3ObjectStorage()

STICKER_CONTENT_TYPE = "image/webp"


def _update_job_meta(**entries: str | int | float | list) -> None:
    job = get_current_job()
    if not job:
        return
    job.meta.update(entries)
    job.save_meta()


def _safe_stem(name: str, fallback: str) -> str:
    stem = Path(name).stem
    safe = "".join(ch for ch in stem if ch.isalnum() or ch in ("-", "_"))
    return safe or fallback


def _use_case(tolerance: float | None, erode: bool | None) -> MakeStickerUseCase:
    strategy = with_overrides(strategy_from_settings(settings), tolerance=tolerance, erode=erode)
    return build_use_case(settings, strategy)


def process_sticker_job(
    image_bytes: bytes,
    original_name: str,
    tolerance: float | None = None,
    erode: bool | None = None,
) -> dict[str, str]:
    job = get_current_job()
    job_id = job.id if job else "sync"
    _update_job_meta(progress=5, stage="prepare")

    try:
        use_case = _use_case(tolerance, erode)
        _update_job_meta(progress=30, stage="make_sticker")
        with metrics.timed("sticker_pipeline"):
            sticker = use_case.execute(image_bytes)

        key = f"stickers/{job_id}/{_safe_stem(original_name, 'sticker')}.webp"
        _update_job_meta(progress=80, stage="upload")
        storage.put_bytes(key, sticker, STICKER_CONTENT_TYPE)
        _update_job_meta(progress=100, stage="done")
    except Exception as exc:  # noqa: BLE001
        metrics.incr("sticker_jobs_failed_total")
        _update_job_meta(progress=0, stage="failed", error=str(exc), traceback=traceback.format_exc())
        raise

    metrics.incr("stickers_created_total")
    return {
        "kind": "single",
        "key": key,
        "filename": Path(key).name,
        "content_type": STICKER_CONTENT_TYPE,
    }


def process_sticker_batch_job(
    files_payload: list[dict[str, bytes | str]],
    tolerance: float | None = None,
    erode: bool | None = None,
) -> dict[str, str | list[str]]:
    job = get_current_job()
    job_id = job.id if job else "sync"
    total = max(1, len(files_payload))
    _update_job_meta(progress=3, stage="prepare", total=total, current=0)

    try:
        use_case = _use_case(tolerance, erode)
        processor: StickerBatchProcessor[dict[str, bytes | str]] = StickerBatchProcessor(
            use_case.execute,
            timeout_seconds=settings.sticker_image_timeout_seconds,
            load=lambda payload: payload["bytes"],  # type: ignore[return-value]
        )
        names = [
            f"{_safe_stem(str(payload.get('name') or ''), f'sticker-{index}')}.webp"
            for index, payload in enumerate(files_payload, start=1)
        ]
        output_buffer = io.BytesIO()

        with zipfile.ZipFile(output_buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:

            def deliver(index: int, sticker: bytes) -> None:
                archive.writestr(names[index], sticker)
                progress = int(((index + 1) / total) * 90)
                _update_job_meta(progress=progress, stage="processing", total=total, current=index + 1)

            report = processor.run(files_payload, deliver=deliver)

        skipped = [names[index] for index in report.skipped]
        if not report.delivered:
            raise RuntimeError(f"No stickers could be made from {len(files_payload)} images")

        key = f"stickers/{job_id}/stickers.zip"
        _update_job_meta(progress=95, stage="upload", skipped=skipped)
        storage.put_bytes(key, output_buffer.getvalue(), "application/zip")
        _update_job_meta(progress=100, stage="done")
    except Exception as exc:  # noqa: BLE001
        metrics.incr("sticker_jobs_failed_total")
        _update_job_meta(progress=0, stage="failed", error=str(exc), traceback=traceback.format_exc())
        raise

    metrics.incr("stickers_created_total", len(report.delivered))
    logger.info("batch %s: %d stickers, %d skipped", job_id, len(report.delivered), len(skipped))
    return {
        "kind": "batch",
        "key": key,
        "filename": "stickers.zip",
        "content_type": "application/zip",
        "skipped": skipped,
    }
