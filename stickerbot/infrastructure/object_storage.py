from __future__ import annotations

from datetime import datetime
from typing import Iterator

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from stickerbot.config import settings

STICKER_PREFIX = "stickers/"


class S3ObjectStorage:
    """Sticker outputs in an S3-compatible bucket, keyed ``stickers/<job id>/<name>``."""

    def __init__(self) -> None:
        if not settings.s3_access_key or not settings.s3_secret_key:
            raise RuntimeError("S3_ACCESS_KEY and S3_SECRET_KEY are required")

        self._bucket = settings.s3_bucket
        self._client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            use_ssl=settings.s3_secure,
            config=Config(signature_version="s3v4", s3={"addressing_style": settings.s3_addressing_style}),
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def ensure_bucket(self) -> None:
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchBucket"}:
                self._client.create_bucket(Bucket=self._bucket)
                return
            raise

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        self._client.put_object(Bucket=self._bucket, Key=key, Body=data, ContentType=content_type)

    def get_bytes(self, key: str) -> bytes:
        response = self._client.get_object(Bucket=self._bucket, Key=key)
        try:
            return response["Body"].read()
        finally:
            response["Body"].close()

    def delete_object(self, key: str) -> None:
        self._client.delete_object(Bucket=self._bucket, Key=key)

    def iter_sticker_objects(self, prefix: str = STICKER_PREFIX) -> Iterator[tuple[str, datetime]]:
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                yield obj["Key"], obj["LastModified"]
