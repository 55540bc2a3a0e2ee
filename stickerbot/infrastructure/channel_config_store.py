from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock

logger = logging.getLogger("stickers.channels")

WORD_LISTS = ("whitelist", "blacklist")


@dataclass
class ChannelWords:
    whitelist: list[str] = field(default_factory=list)
    blacklist: list[str] = field(default_factory=list)


class ChannelConfigStore:
    """Per-channel whitelist/blacklist persisted as one JSON document."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = Lock()
        self._channels: dict[str, ChannelWords] = self._load()

    def _load(self) -> dict[str, ChannelWords]:
        if not self._path.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps({}, indent=2), encoding="utf-8")
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to load channel config %s: %s", self._path, exc)
            return {}
        return {
            str(chat_id): ChannelWords(
                whitelist=list(entry.get("whitelist", [])),
                blacklist=list(entry.get("blacklist", [])),
            )
            for chat_id, entry in raw.items()
        }

    def _save(self) -> None:
        payload = {
            chat_id: {"whitelist": words.whitelist, "blacklist": words.blacklist}
            for chat_id, words in self._channels.items()
        }
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def get(self, chat_id: int | str) -> ChannelWords:
        with self._lock:
            words = self._channels.get(str(chat_id))
            if words is None:
                return ChannelWords()
            return ChannelWords(list(words.whitelist), list(words.blacklist))

    def add_words(self, chat_id: int | str, list_name: str, words: list[str]) -> list[str]:
        """Append ``words`` to the named list and return the ones that were new."""
        if list_name not in WORD_LISTS:
            raise ValueError(f"Unknown word list: {list_name}")
        with self._lock:
            channel = self._channels.setdefault(str(chat_id), ChannelWords())
            current: list[str] = getattr(channel, list_name)
            added = [word for word in dict.fromkeys(words) if word not in current]
            current.extend(added)
            self._save()
            return added

    def clear(self, chat_id: int | str, list_name: str) -> None:
        if list_name not in WORD_LISTS:
            raise ValueError(f"Unknown word list: {list_name}")
        with self._lock:
            channel = self._channels.setdefault(str(chat_id), ChannelWords())
            setattr(channel, list_name, [])
            self._save()
