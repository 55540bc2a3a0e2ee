from __future__ import annotations

import io
import time
from types import SimpleNamespace

from PIL import Image, ImageDraw

import bot as bot_entry
from stickerbot.application.sticker_bot import DONE_TEXT, build_bot
from stickerbot.domain.collaborators import ChatMessage, ChatRef, GenerationRequest

PRIVATE = ChatRef(chat_id=1, kind='private')


class FakeTransport:
    def __init__(self) -> None:
        self.texts: list[str] = []
        self.stickers: list[bytes] = []

    def send_message(self, chat: ChatRef, text: str) -> None:
        self.texts.append(text)

    def send_sticker(self, chat: ChatRef, payload: bytes) -> None:
        self.stickers.append(payload)

    def is_admin(self, chat: ChatRef, user_id) -> bool:
        return False


class FakeGenerator:
    def __init__(self, urls: list[str]) -> None:
        self.urls = urls
        self.requests: list[GenerationRequest] = []

    def submit_generation_job(self, request: GenerationRequest) -> list[str]:
        self.requests.append(request)
        return list(self.urls)


class FakeResponse:
    def __init__(self, payload: bytes) -> None:
        self._payload = payload

    def __enter__(self) -> 'FakeResponse':
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def raise_for_status(self) -> None:
        return None

    def iter_content(self, chunk_size: int = 1):  # noqa: ARG002
        yield self._payload


class FakeSession:
    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.urls: list[str] = []

    def get(self, url: str, **kwargs) -> FakeResponse:  # noqa: ARG002
        self.urls.append(url)
        return FakeResponse(self.payload)


def _green_screen_png() -> bytes:
    img = Image.new('RGB', (80, 60), (0, 255, 0))
    ImageDraw.Draw(img).rectangle((20, 15, 59, 44), fill=(255, 0, 0))
    out = io.BytesIO()
    img.save(out, format='PNG')
    return out.getvalue()


def _settings(tmp_path, **overrides) -> SimpleNamespace:
    values = dict(
        sticker_strategy='flood_fill',
        sticker_tolerance=30.0,
        sticker_sample_size=5,
        sticker_sample_corner='top-left',
        sticker_erode=True,
        sticker_hue_preset='green',
        sticker_max_dimension=512,
        sticker_max_bytes=512 * 1024,
        sticker_quality_step=10,
        sticker_quality_floor=10,
        sticker_image_timeout_seconds=10,
        image_fetch_timeout_seconds=5,
        max_image_bytes=1024 * 1024,
        channel_config_path=str(tmp_path / 'channels.json'),
        usage_store_path=str(tmp_path / 'usage.json'),
        daily_generation_limit=0,
        bot_username='StickerBot',
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_build_bot_fetches_generated_images_and_sends_stickers(tmp_path) -> None:
    transport = FakeTransport()
    session = FakeSession(_green_screen_png())
    bot = build_bot(
        _settings(tmp_path),
        transport,
        FakeGenerator(['https://images/0', 'https://images/1']),
        session=session,
    )

    bot.handle_message(ChatMessage(chat=PRIVATE, user_id=1, text='!generate a red square'))
    assert bot.process_next(timeout=1)

    assert session.urls == ['https://images/0', 'https://images/1']
    assert len(transport.stickers) == 2
    with Image.open(io.BytesIO(transport.stickers[0])) as sticker:
        assert sticker.format == 'WEBP'
        assert sticker.size == (80, 60)
        assert sticker.convert('RGBA').getpixel((0, 0))[3] == 0
    assert transport.texts[-1] == DONE_TEXT
    assert (tmp_path / 'channels.json').exists()


def test_build_bot_applies_daily_limit(tmp_path) -> None:
    transport = FakeTransport()
    bot = build_bot(
        _settings(tmp_path, daily_generation_limit=1),
        transport,
        FakeGenerator([]),
        session=FakeSession(b''),
    )

    bot.handle_message(ChatMessage(chat=PRIVATE, user_id=1, text='!generate one'))
    bot.process_next(timeout=1)
    bot.handle_message(ChatMessage(chat=PRIVATE, user_id=1, text='!generate two'))
    assert "reached today's limit of 1" in transport.texts[-1]


def test_start_bot_serves_queue_on_background_thread(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(bot_entry.settings, 'channel_config_path', str(tmp_path / 'channels.json'))
    monkeypatch.setattr(bot_entry.settings, 'usage_store_path', str(tmp_path / 'usage.json'))
    monkeypatch.setattr(bot_entry.settings, 'daily_generation_limit', 0)
    transport = FakeTransport()

    runner = bot_entry.start_bot(transport, FakeGenerator([]), poll_seconds=0.05)
    try:
        runner.bot.handle_message(ChatMessage(chat=PRIVATE, user_id=1, text='!generate a cat'))
        deadline = time.monotonic() + 5
        while len(transport.texts) < 2 and time.monotonic() < deadline:
            time.sleep(0.02)
    finally:
        runner.stop(timeout=5)

    assert transport.texts[-1].startswith('No images were generated')
    assert not runner.is_alive()
