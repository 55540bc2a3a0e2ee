from __future__ import annotations

import logging
import threading

from stickerbot.application.sticker_bot import StickerBot, build_bot
from stickerbot.config import settings
from stickerbot.domain.collaborators import ChatTransport, GenerationService

logger = logging.getLogger("stickers.bot")


class BotRunner(threading.Thread):
    """Serves queued sticker requests on a background thread until ``stop``."""

    def __init__(self, bot: StickerBot, poll_seconds: float = 1.0) -> None:
        super().__init__(name="sticker-bot", daemon=True)
        self.bot = bot
        self._poll_seconds = poll_seconds
        self._stop_event = threading.Event()

    def run(self) -> None:
        logger.info("sticker bot is serving requests")
        self.bot.run_forever(self._stop_event, poll_seconds=self._poll_seconds)

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        self.join(timeout)


def start_bot(transport: ChatTransport, generator: GenerationService, poll_seconds: float = 1.0) -> BotRunner:
    """Build the bot from ``settings`` and start serving its queue.

    The chat adapter feeds incoming messages to ``runner.bot.handle_message``.
    """
    logging.basicConfig(level=logging.INFO)
    runner = BotRunner(build_bot(settings, transport, generator), poll_seconds=poll_seconds)
    runner.start()
    return runner
