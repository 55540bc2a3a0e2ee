from __future__ import annotations

from stickerbot.config import settings
from stickerbot.tasks.maintenance_jobs import cleanup_expired_outputs_job


if __name__ == "__main__":
    print(cleanup_expired_outputs_job(settings.cleanup_older_than_seconds))
