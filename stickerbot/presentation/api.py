from __future__ import annotations

import json
import logging
import time
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import PlainTextResponse, Response
from rq.job import Job
from rq.registry import FailedJobRegistry, StartedJobRegistry
from starlette.middleware.base import BaseHTTPMiddleware

from stickerbot.config import settings
from stickerbot.infrastructure.image_codec import ImageValidationError, validate_image_bytes
from stickerbot.infrastructure.jobs import enqueue_retry, get_queue, get_redis_connection
from stickerbot.infrastructure.metrics import metrics
from stickerbot.infrastructure.object_storage import S3ObjectStorage

logger = logging.getLogger("stickers.api")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Sticker Maker")

redis_connection = get_redis_connection()
queue = get_queue(redis_connection)
storage = S3ObjectStorage()

SINGLE_JOB = "stickerbot.tasks.sticker_jobs.process_sticker_job"
BATCH_JOB = "stickerbot.tasks.sticker_jobs.process_sticker_batch_job"
TERMINAL_STATUSES = {"finished", "failed", "stopped", "canceled"}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id, rate-limits ``/api/`` per client IP and logs one JSON line."""

    def __init__(self, app: FastAPI) -> None:
        super().__init__(app)
        self._windows: dict[str, deque[float]] = defaultdict(deque)

    def _allow(self, client_ip: str) -> bool:
        now = time.time()
        window = self._windows[client_ip]
        while window and window[0] < now - 60.0:
            window.popleft()
        if len(window) >= settings.rate_limit_per_minute:
            return False
        window.append(now)
        return True

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.perf_counter()
        request.state.request_id = request_id
        metrics.incr("http_requests_total")

        if request.url.path.startswith("/api/"):
            client_ip = request.client.host if request.client else "unknown"
            if not self._allow(client_ip):
                metrics.incr("rate_limited_total")
                return Response(
                    content='{"detail":"Rate limit exceeded. Try again in a minute."}',
                    status_code=429,
                    media_type="application/json",
                    headers={"x-request-id": request_id},
                )

        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        logger.info(
            json.dumps(
                {
                    "request_id": request_id,
                    "method": request.method,
                    "path": str(request.url.path),
                    "status": response.status_code,
                    "elapsed_ms": int((time.perf_counter() - start) * 1000),
                }
            )
        )
        return response


app.add_middleware(RequestContextMiddleware)


def _validate_tolerance(tolerance: float | None) -> float | None:
    if tolerance is not None and not 0 <= tolerance <= 441.7:
        raise HTTPException(status_code=400, detail="tolerance must be between 0 and 441.7")
    return tolerance


def _check_upload(file: UploadFile, image_bytes: bytes) -> None:
    name = file.filename or "file"
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail=f"{name} is not an image")
    if len(image_bytes) > settings.max_image_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"{name} is too large. Max size is {settings.max_image_bytes // (1024 * 1024)} MB",
        )
    try:
        validate_image_bytes(image_bytes, max_pixels=settings.max_image_pixels)
    except ImageValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _fetch_job(job_id: str) -> Job:
    try:
        return Job.fetch(job_id, connection=redis_connection)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=404, detail="Job not found") from exc


def _status_payload(job: Job) -> dict:
    status = job.get_status(refresh=True)
    meta = job.meta or {}
    payload: dict = {
        "job_id": job.id,
        "status": status,
        "progress": int(meta.get("progress", 0)),
        "stage": str(meta.get("stage", "queued")),
        "download_path": None,
        "filename": None,
        "skipped": list(meta.get("skipped", [])),
        "error": None,
    }

    if status == "failed":
        payload["error"] = str(meta.get("error") or "Job failed")
    elif status == "finished":
        result = job.result if isinstance(job.result, dict) else {}
        payload.update(
            progress=100,
            stage="done",
            filename=result.get("filename"),
            download_path=f"/api/jobs/{job.id}/download",
            skipped=list(result.get("skipped", [])),
        )
    return payload


def _enqueue(func: str, *args) -> str:
    job = queue.enqueue(
        func,
        *args,
        result_ttl=settings.job_result_ttl_seconds,
        failure_ttl=settings.job_failure_ttl_seconds,
        retry=enqueue_retry(),
    )
    metrics.incr("jobs_submitted_total")
    return job.id


def _queue_stats() -> tuple[int, int, int]:
    try:
        started = StartedJobRegistry(name=queue.name, connection=redis_connection)
        failed = FailedJobRegistry(name=queue.name, connection=redis_connection)
        return queue.count, len(started.get_job_ids()), len(failed.get_job_ids())
    except Exception:  # noqa: BLE001
        return 0, 0, 0


def _refresh_queue_gauges() -> None:
    depth, started, failed = _queue_stats()
    metrics.set_gauge("queue_depth", depth)
    metrics.set_gauge("queue_started", started)
    metrics.set_gauge("queue_failed", failed)


@app.post("/api/jobs/sticker")
async def enqueue_sticker(
    file: UploadFile = File(...),
    tolerance: float | None = Form(None),
    erode: bool | None = Form(None),
) -> dict[str, str]:
    tolerance = _validate_tolerance(tolerance)
    image_bytes = await file.read()
    _check_upload(file, image_bytes)

    job_id = _enqueue(SINGLE_JOB, image_bytes, file.filename or "image.png", tolerance, erode)
    return {"job_id": job_id, "status": "queued"}


@app.post("/api/jobs/sticker-batch")
async def enqueue_sticker_batch(
    files: list[UploadFile] = File(...),
    tolerance: float | None = Form(None),
    erode: bool | None = Form(None),
) -> dict[str, str]:
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > settings.max_batch_files:
        raise HTTPException(status_code=400, detail=f"Max {settings.max_batch_files} files per batch")
    tolerance = _validate_tolerance(tolerance)

    payload: list[dict[str, bytes | str]] = []
    for index, file in enumerate(files, start=1):
        image_bytes = await file.read()
        try:
            _check_upload(file, image_bytes)
        except HTTPException as exc:
            raise HTTPException(status_code=exc.status_code, detail=f"file-{index}: {exc.detail}") from exc
        payload.append({"name": file.filename or f"file-{index}.png", "bytes": image_bytes})

    job_id = _enqueue(BATCH_JOB, payload, tolerance, erode)
    return {"job_id": job_id, "status": "queued"}


@app.get("/api/jobs/{job_id}")
def get_job_status(job_id: str) -> dict:
    return _status_payload(_fetch_job(job_id))


@app.post("/api/jobs/{job_id}/cancel")
def cancel_job(job_id: str) -> dict[str, str]:
    job = _fetch_job(job_id)
    status = job.get_status(refresh=True)
    if status in TERMINAL_STATUSES:
        return {"job_id": job.id, "status": status}

    job.cancel()
    metrics.incr("jobs_canceled_total")
    return {"job_id": job.id, "status": "canceled"}


@app.post("/api/jobs/{job_id}/retry")
def retry_job(job_id: str) -> dict[str, str]:
    job = _fetch_job(job_id)
    if job.get_status(refresh=True) != "failed":
        raise HTTPException(status_code=409, detail="Only failed jobs can be retried")

    try:
        requeued = queue.enqueue_call(
            func=job.func_name,
            args=job.args,
            kwargs=job.kwargs,
            result_ttl=settings.job_result_ttl_seconds,
            failure_ttl=settings.job_failure_ttl_seconds,
            retry=enqueue_retry(),
        )
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=500, detail="Failed to requeue job") from exc

    metrics.incr("jobs_retried_total")
    return {"job_id": requeued.id, "status": "queued"}


@app.get("/api/jobs/{job_id}/download")
def download_job_result(job_id: str) -> Response:
    job = _fetch_job(job_id)
    if job.get_status(refresh=True) != "finished":
        raise HTTPException(status_code=409, detail="Job is not finished")

    result = job.result
    if not isinstance(result, dict) or "key" not in result:
        raise HTTPException(status_code=500, detail="Job result key not found")

    try:
        data = storage.get_bytes(result["key"])
    except Exception as exc:  # noqa: BLE001
        logger.warning("storage read failed for %s: %s", result["key"], exc)
        raise HTTPException(status_code=500, detail="Failed to read result from storage") from exc

    metrics.incr("downloads_total")
    filename = str(result.get("filename") or "sticker.webp")
    return Response(
        content=data,
        media_type=str(result.get("content_type") or "application/octet-stream"),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/metrics")
def get_metrics() -> dict:
    _refresh_queue_gauges()
    snapshot = metrics.snapshot()
    snapshot["timestamp"] = int(datetime.now(timezone.utc).timestamp())
    return snapshot


@app.get("/api/metrics/prometheus")
def get_prometheus_metrics() -> PlainTextResponse:
    _refresh_queue_gauges()
    return PlainTextResponse(metrics.to_prometheus_text(), media_type="text/plain; version=0.0.4")


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
