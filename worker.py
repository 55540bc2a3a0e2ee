from __future__ import annotations

import logging
import multiprocessing
import threading
import time

from rq import Queue, Worker

from stickerbot.config import settings
from stickerbot.infrastructure.jobs import get_queue, get_redis_connection
from stickerbot.infrastructure.object_storage import S3ObjectStorage

logger = logging.getLogger("stickers.worker")

CLEANUP_JOB = "stickerbot.tasks.maintenance_jobs.cleanup_expired_outputs_job"


class CleanupScheduler(threading.Thread):
    def __init__(self, queue: Queue) -> None:
        super().__init__(daemon=True)
        self._queue = queue

    def run(self) -> None:
        while True:
            if settings.cleanup_enabled:
                self._queue.enqueue(
                    CLEANUP_JOB,
                    settings.cleanup_older_than_seconds,
                    result_ttl=settings.job_result_ttl_seconds,
                    failure_ttl=settings.job_failure_ttl_seconds,
                )
            time.sleep(max(60, settings.cleanup_interval_seconds))


def run_worker_instance(index: int) -> None:
    connection = get_redis_connection()
    worker = Worker([settings.queue_name], connection=connection, name=f"sticker-worker-{index}")
    worker.work()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    try:
        S3ObjectStorage().ensure_bucket()
    except Exception as exc:  # noqa: BLE001
        logger.warning("storage init failed at startup: %s", exc)

    CleanupScheduler(get_queue()).start()

    worker_count = max(1, settings.worker_concurrency)
    if worker_count == 1:
        run_worker_instance(1)
        return

    processes: list[multiprocessing.Process] = []
    for idx in range(worker_count):
        process = multiprocessing.Process(target=run_worker_instance, args=(idx + 1,))
        process.start()
        processes.append(process)
    for process in processes:
        process.join()


if __name__ == "__main__":
    main()
