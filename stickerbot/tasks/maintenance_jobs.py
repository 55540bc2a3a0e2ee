from __future__ import annotations

import logging
import time

from stickerbot.infrastructure.object_storage import STICKER_PREFIX, S3ObjectStorage

logger = logging.getLogger("stickers.maintenance")

storage = S3ObjectStorage()


def cleanup_expired_outputs_job(older_than_seconds: int) -> dict[str, int]:
    now = int(time.time())
    deleted = 0
    scanned = 0

    for key, last_modified in storage.iter_sticker_objects(prefix=STICKER_PREFIX):
        scanned += 1
        if now - int(last_modified.timestamp()) < older_than_seconds:
            continue
        storage.delete_object(key)
        deleted += 1

    logger.info("cleanup scanned=%d deleted=%d", scanned, deleted)
    return {"scanned": scanned, "deleted": deleted}
