from __future__ import annotations

import requests


class ImageFetcher:
    def __init__(self, timeout_seconds: float, max_bytes: int, session: requests.Session | None = None) -> None:
        self._timeout_seconds = timeout_seconds
        self._max_bytes = max_bytes
        self._session = session or requests.Session()

    def fetch(self, url: str) -> bytes:
        with self._session.get(url, timeout=self._timeout_seconds, stream=True) as response:
            response.raise_for_status()
            chunks: list[bytes] = []
            received = 0
            for chunk in response.iter_content(chunk_size=64 * 1024):
                received += len(chunk)
                if received > self._max_bytes:
                    raise ValueError(f"Image at {url} exceeds {self._max_bytes} bytes")
                chunks.append(chunk)
            return b"".join(chunks)
