from __future__ import annotations

import os


class Settings:
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    queue_name: str = os.getenv("QUEUE_NAME", "stickers")
    worker_concurrency: int = int(os.getenv("WORKER_CONCURRENCY", "1"))

    s3_endpoint_url: str | None = os.getenv("S3_ENDPOINT_URL", "http://localhost:9000")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")
    s3_access_key: str | None = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str | None = os.getenv("S3_SECRET_KEY", "minioadmin")
    s3_bucket: str = os.getenv("S3_BUCKET", "sticker-assets")
    s3_secure: bool = os.getenv("S3_SECURE", "false").lower() == "true"
    s3_addressing_style: str = os.getenv("S3_ADDRESSING_STYLE", "path")

    max_image_bytes: int = int(os.getenv("MAX_IMAGE_BYTES", str(12 * 1024 * 1024)))
    max_batch_files: int = int(os.getenv("MAX_BATCH_FILES", "16"))
    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "45"))
    max_image_pixels: int = int(os.getenv("MAX_IMAGE_PIXELS", str(20_000_000)))

    job_result_ttl_seconds: int = int(os.getenv("JOB_RESULT_TTL_SECONDS", "86400"))
    job_failure_ttl_seconds: int = int(os.getenv("JOB_FAILURE_TTL_SECONDS", "86400"))
    job_retry_max: int = int(os.getenv("JOB_RETRY_MAX", "2"))
    job_retry_intervals: tuple[int, ...] = tuple(
        int(x.strip()) for x in os.getenv("JOB_RETRY_INTERVALS", "5,20").split(",") if x.strip()
    )

    cleanup_enabled: bool = os.getenv("CLEANUP_ENABLED", "true").lower() == "true"
    cleanup_interval_seconds: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "900"))
    cleanup_older_than_seconds: int = int(os.getenv("CLEANUP_OLDER_THAN_SECONDS", "86400"))

    # flood_fill | global_match | hue_band
    sticker_strategy: str = os.getenv("STICKER_STRATEGY", "flood_fill")
    sticker_tolerance: float = float(os.getenv("STICKER_TOLERANCE", "30"))
    sticker_sample_size: int = int(os.getenv("STICKER_SAMPLE_SIZE", "5"))
    sticker_sample_corner: str = os.getenv("STICKER_SAMPLE_CORNER", "top-left")
    sticker_erode: bool = os.getenv("STICKER_ERODE", "true").lower() == "true"
    sticker_hue_preset: str = os.getenv("STICKER_HUE_PRESET", "green")

    sticker_max_dimension: int = int(os.getenv("STICKER_MAX_DIMENSION", "512"))
    sticker_max_bytes: int = int(os.getenv("STICKER_MAX_BYTES", str(512 * 1024)))
    sticker_quality_step: int = int(os.getenv("STICKER_QUALITY_STEP", "10"))
    sticker_quality_floor: int = int(os.getenv("STICKER_QUALITY_FLOOR", "10"))
    sticker_image_timeout_seconds: float = float(os.getenv("STICKER_IMAGE_TIMEOUT_SECONDS", "30"))

    image_fetch_timeout_seconds: float = float(os.getenv("IMAGE_FETCH_TIMEOUT_SECONDS", "20"))
    bot_username: str | None = os.getenv("BOT_USERNAME")
    channel_config_path: str = os.getenv("CHANNEL_CONFIG_PATH", "data/channelConfig.json")
    usage_store_path: str = os.getenv("USAGE_STORE_PATH", "data/dailyUsage.json")
    daily_generation_limit: int = int(os.getenv("DAILY_GENERATION_LIMIT", "0"))


settings = Settings()
