from __future__ import annotations

import re
from dataclasses import dataclass, field

from stickerbot.domain.collaborators import ChatRef

GENERATE_PREFIX = re.compile(r"^!generate\b\s*", re.IGNORECASE)
REQUESTED_COUNT = re.compile(r"\((\d+)\)\s*$")

DEFAULT_BATCH_SIZE = 3
THREAD_BATCH_SIZE = 1
MAX_BATCH_SIZE = 16


@dataclass(frozen=True)
class FilterResult:
    is_valid: bool
    has_blacklisted_words: bool = False
    missing_whitelist_words: list[str] = field(default_factory=list)


def _contains_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text, re.IGNORECASE) is not None


def validate_prompt(text: str, whitelist: list[str], blacklist: list[str]) -> FilterResult:
    """Reject any blacklisted word; when a whitelist exists, require one of its words."""
    if any(_contains_word(text, word) for word in blacklist):
        return FilterResult(is_valid=False, has_blacklisted_words=True)
    if whitelist and not any(_contains_word(text, word) for word in whitelist):
        return FilterResult(is_valid=False, missing_whitelist_words=list(whitelist))
    return FilterResult(is_valid=True)


def parse_word_list(raw: str) -> list[str]:
    """Split ``cat,dog`` into lower-cased words. Whitespace is rejected with ValueError."""
    cleaned = raw.strip()
    if re.search(r"\s", cleaned):
        raise ValueError("Words must be separated by commas only")
    words: list[str] = []
    for word in cleaned.split(","):
        word = word.strip().lower()
        if word and word not in words:
            words.append(word)
    return words


def is_generate_command(text: str) -> bool:
    return GENERATE_PREFIX.match(text.strip()) is not None


def strip_generate_prefix(text: str) -> str:
    return GENERATE_PREFIX.sub("", text.strip(), count=1).strip()


def resolve_batch(prompt: str, chat: ChatRef) -> tuple[str, int]:
    """Return the prompt and how many images to request for it.

    Threads get one image. Private chats may end the prompt with ``(NN)``
    to ask for up to sixteen.
    """
    batch_size = THREAD_BATCH_SIZE if chat.in_thread else DEFAULT_BATCH_SIZE
    if chat.kind == "private":
        match = REQUESTED_COUNT.search(prompt)
        if match:
            batch_size = max(1, min(int(match.group(1)), MAX_BATCH_SIZE))
            prompt = REQUESTED_COUNT.sub("", prompt).strip()
    return prompt, batch_size
