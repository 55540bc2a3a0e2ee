from __future__ import annotations

import pytest
import requests

from stickerbot.infrastructure.image_fetcher import ImageFetcher


class FakeResponse:
    def __init__(self, chunks: list[bytes], status_code: int = 200) -> None:
        self._chunks = chunks
        self.status_code = status_code
        self.closed = False

    def __enter__(self) -> 'FakeResponse':
        return self

    def __exit__(self, *exc_info) -> None:
        self.closed = True

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error', response=self)

    def iter_content(self, chunk_size: int = 1):  # noqa: ARG002
        yield from self._chunks


class FakeSession:
    def __init__(self, response: FakeResponse) -> None:
        self.response = response
        self.calls = []

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append((url, kwargs))
        return self.response


def test_fetch_joins_chunks() -> None:
    session = FakeSession(FakeResponse([b'abc', b'def']))
    fetcher = ImageFetcher(timeout_seconds=7, max_bytes=100, session=session)

    assert fetcher.fetch('https://images/1.png') == b'abcdef'
    url, kwargs = session.calls[0]
    assert url == 'https://images/1.png'
    assert kwargs == {'timeout': 7, 'stream': True}
    assert session.response.closed


def test_fetch_rejects_oversized_download() -> None:
    session = FakeSession(FakeResponse([b'x' * 60, b'x' * 60]))
    fetcher = ImageFetcher(timeout_seconds=7, max_bytes=100, session=session)

    with pytest.raises(ValueError, match='exceeds 100 bytes'):
        fetcher.fetch('https://images/big.png')
    assert session.response.closed


def test_fetch_raises_on_http_error() -> None:
    session = FakeSession(FakeResponse([b'not found'], status_code=404))
    fetcher = ImageFetcher(timeout_seconds=7, max_bytes=100, session=session)

    with pytest.raises(requests.HTTPError):
        fetcher.fetch('https://images/missing.png')
