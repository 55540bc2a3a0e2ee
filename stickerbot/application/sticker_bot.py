from __future__ import annotations

import logging
from threading import Event

import requests

from stickerbot.application.make_sticker_use_case import build_use_case
from stickerbot.application.prompt_filters import (
    is_generate_command,
    parse_word_list,
    resolve_batch,
    strip_generate_prefix,
    validate_prompt,
)
from stickerbot.application.request_scheduler import (
    AlreadyQueuedError,
    RequestScheduler,
    StickerRequest,
)
from stickerbot.application.sticker_batch import StickerBatchProcessor
from stickerbot.domain.collaborators import (
    ChatMessage,
    ChatRef,
    ChatTransport,
    GenerationRequest,
    GenerationService,
)
from stickerbot.infrastructure.channel_config_store import ChannelConfigStore
from stickerbot.infrastructure.image_fetcher import ImageFetcher
from stickerbot.infrastructure.metrics import metrics
from stickerbot.infrastructure.usage_limit_store import DailyUsageStore

logger = logging.getLogger("stickers.bot")

HELP_TEXT = """
**Available Commands**:
- **/help** - Show this help message
- **/start** - Basic start message
- **!generate <prompt>** - Generate stickers

- **/addwhitelist** - Add comma-separated words to this channel's whitelist (admin-only)
- **/addblacklist** - Add comma-separated words to this channel's blacklist (admin-only)
- **/clearwhitelist** - Clear this channel's whitelist (admin-only)
- **/clearblacklist** - Clear this channel's blacklist (admin-only)

- **/listwhitelist** - Show the channel's current whitelist
- **/listblacklist** - Show the channel's current blacklist (admin-only)

Whitelist means the prompt must contain at least one of these words.
Blacklist means the prompt must contain none of those words.
""".strip()

START_TEXT = 'Good day! What would you like me to create a sticker of? Use "!generate Your prompt..."!'
GREETING_TEXT = 'Hello, I am a sticker bot! Type /start to get started, or use "!generate Your prompt..."!'
NOT_ALLOWED_TEXT = "You are not allowed to use that command."
DONE_TEXT = "Here you go! Right-click / long press to save them!"
FAILED_TEXT = "An error occurred. Please try again later."

LIST_COMMANDS = {
    "/addwhitelist": ("add", "whitelist"),
    "/addblacklist": ("add", "blacklist"),
    "/clearwhitelist": ("clear", "whitelist"),
    "/clearblacklist": ("clear", "blacklist"),
}


class StickerBot:
    """Chat-facing orchestration: commands, word filters, queueing and delivery.

    ``handle_message`` is the transport's message callback. Requests are served
    one at a time by ``process_next`` (or ``run_forever`` on a worker thread).
    """

    def __init__(
        self,
        transport: ChatTransport,
        generator: GenerationService,
        processor: StickerBatchProcessor[str],
        scheduler: RequestScheduler,
        channels: ChannelConfigStore,
        usage: DailyUsageStore,
        daily_limit: int = 0,
        bot_username: str | None = None,
    ) -> None:
        self._transport = transport
        self._generator = generator
        self._processor = processor
        self._scheduler = scheduler
        self._channels = channels
        self._usage = usage
        self._daily_limit = daily_limit
        self._bot_username = bot_username.lower() if bot_username else None

    def _reply(self, chat: ChatRef, text: str) -> None:
        self._transport.send_message(chat, text)

    # incoming messages

    def handle_message(self, message: ChatMessage) -> None:
        text = (message.text or "").strip()
        if not text:
            return

        if text.startswith("/"):
            self._handle_command(message, text)
            return

        lowered = text.lower()
        if lowered.startswith("hi") or lowered.startswith("hello"):
            self._handle_greeting(message, lowered)
            return

        if is_generate_command(text):
            self._enqueue(message, strip_generate_prefix(text))

    def _handle_greeting(self, message: ChatMessage, lowered: str) -> None:
        if message.chat.kind == "private":
            self._reply(message.chat, GREETING_TEXT)
        elif self._bot_username and f"@{self._bot_username}" in lowered:
            self._reply(message.chat, GREETING_TEXT)

    def _handle_command(self, message: ChatMessage, text: str) -> None:
        command, _, argument = text.partition(" ")
        command = command.split("@", 1)[0].lower()
        argument = argument.strip()
        chat = message.chat

        if command == "/help":
            self._reply(chat, HELP_TEXT)
        elif command == "/start":
            self._reply(chat, START_TEXT)
        elif command == "/listwhitelist":
            self._list_words(chat, "whitelist")
        elif command == "/listblacklist":
            if self._transport.is_admin(chat, message.user_id):
                self._list_words(chat, "blacklist")
            else:
                self._reply(chat, NOT_ALLOWED_TEXT)
        elif command in LIST_COMMANDS:
            if not chat.is_group:
                return
            if not self._transport.is_admin(chat, message.user_id):
                self._reply(chat, NOT_ALLOWED_TEXT)
                return
            action, list_name = LIST_COMMANDS[command]
            if action == "add":
                self._add_words(chat, command, list_name, argument)
            else:
                self._channels.clear(chat.chat_id, list_name)
                self._reply(chat, f"{list_name.capitalize()} cleared.")

    def _list_words(self, chat: ChatRef, list_name: str) -> None:
        words = getattr(self._channels.get(chat.chat_id), list_name)
        if not words:
            verb = "whitelisted" if list_name == "whitelist" else "blacklisted"
            self._reply(chat, f"No words are currently {verb} in this channel.")
            return
        bullets = "\n• ".join(words)
        self._reply(chat, f"Current {list_name} words:\n• {bullets}")

    def _add_words(self, chat: ChatRef, command: str, list_name: str, argument: str) -> None:
        example = "cat,dog" if list_name == "whitelist" else "spam,scam"
        usage = f"Please separate your words with commas only (no spaces). Example: {command} {example}"
        try:
            words = parse_word_list(argument)
        except ValueError:
            self._reply(chat, usage)
            return
        if not words:
            self._reply(chat, usage)
            return

        added = self._channels.add_words(chat.chat_id, list_name, words)
        if not added:
            self._reply(chat, "No new words were added (maybe they already exist?).")
        else:
            self._reply(chat, f"Added to {list_name}: {', '.join(added)}")

    def _enqueue(self, message: ChatMessage, prompt: str) -> None:
        chat = message.chat
        if chat.is_group:
            words = self._channels.get(chat.chat_id)
            verdict = validate_prompt(prompt, words.whitelist, words.blacklist)
            if verdict.has_blacklisted_words:
                self._reply(chat, "You can't use blacklisted words in your prompt. Please try again.")
                return
            if verdict.missing_whitelist_words:
                required = ", ".join(verdict.missing_whitelist_words)
                self._reply(chat, f"You must include at least one of the following whitelisted words: {required}.")
                return

        pending_text = (
            "You already have a pending request. Please wait until it's processed. "
            "Thank you for your patience!"
        )
        if self._scheduler.is_pending(message.user_id):
            self._reply(chat, pending_text)
            return

        if not self._usage.try_consume(message.user_id, self._daily_limit):
            self._reply(
                chat,
                f"You have reached today's limit of {self._daily_limit} sticker requests. "
                "Please try again tomorrow.",
            )
            return

        was_busy = self._scheduler.is_busy
        try:
            position = self._scheduler.submit(StickerRequest(message=message, prompt=prompt))
        except AlreadyQueuedError:
            self._usage.refund(message.user_id)
            self._reply(chat, pending_text)
            return

        metrics.incr("bot_requests_total")
        logger.info(
            "Received new request from userId: %s, prompt: %r. Queue length is now %d.",
            message.user_id,
            prompt,
            len(self._scheduler),
        )
        if was_busy or position > 1:
            self._reply(chat, f"Your request is queued. You are number {position} in the queue.")
        else:
            self._reply(chat, f"Generating stickers for: {prompt}")

    # request processing

    def process_next(self, timeout: float | None = None) -> bool:
        """Serve the next queued request. Returns False if none arrived within ``timeout``."""
        request = self._scheduler.next_request(timeout=timeout)
        if request is None:
            return False

        logger.info("Processing request for userId: %s, prompt: %r", request.user_id, request.prompt)
        try:
            self._process(request)
        except Exception:  # noqa: BLE001
            logger.exception("Error processing request for userId: %s", request.user_id)
            metrics.incr("bot_requests_failed_total")
            self._usage.refund(request.user_id)
            self._reply(request.message.chat, FAILED_TEXT)
        finally:
            self._scheduler.complete(request)
            logger.info(
                "Finished processing for userId: %s. Queue length is now %d.",
                request.user_id,
                len(self._scheduler),
            )
        return True

    def run_forever(self, stop: Event, poll_seconds: float = 1.0) -> None:
        while not stop.is_set():
            self.process_next(timeout=poll_seconds)

    def _process(self, request: StickerRequest) -> None:
        chat = request.message.chat
        prompt, batch_size = resolve_batch(request.prompt, chat)
        images = self._generator.submit_generation_job(GenerationRequest(prompt=prompt, image_count=batch_size))
        logger.info("Generation for %r returned %d of %d images", prompt, len(images), batch_size)

        if not images:
            self._reply(
                chat,
                "No images were generated, possibly blocked by the NSFW filter. Please try a safer prompt!",
            )
            return

        if len(images) < batch_size:
            removed = batch_size - len(images)
            plural = "s were" if removed > 1 else " was"
            self._reply(
                chat,
                f"We generated {len(images)} out of {batch_size} images. "
                f"{removed} image{plural} removed because it triggered the NSFW filter. Please try again.",
            )

        def deliver(index: int, payload: bytes) -> None:
            self._transport.send_sticker(chat, payload)

        def skip(index: int, error: Exception) -> None:
            self._reply(chat, f"Image #{index + 1} took too long or failed to process. Skipping it...")

        report = self._processor.run(images, deliver=deliver, on_skip=skip)
        metrics.incr("stickers_delivered_total", len(report.delivered))
        metrics.incr("stickers_skipped_total", len(report.skipped))

        if not chat.in_thread:
            self._reply(chat, DONE_TEXT)


def build_bot(
    settings,
    transport: ChatTransport,
    generator: GenerationService,
    session: requests.Session | None = None,
) -> StickerBot:
    fetcher = ImageFetcher(settings.image_fetch_timeout_seconds, settings.max_image_bytes, session=session)
    processor: StickerBatchProcessor[str] = StickerBatchProcessor(
        build_use_case(settings).execute,
        timeout_seconds=settings.sticker_image_timeout_seconds,
        load=fetcher.fetch,
    )
    return StickerBot(
        transport=transport,
        generator=generator,
        processor=processor,
        scheduler=RequestScheduler(),
        channels=ChannelConfigStore(settings.channel_config_path),
        usage=DailyUsageStore(settings.usage_store_path),
        daily_limit=settings.daily_generation_limit,
        bot_username=settings.bot_username,
    )
