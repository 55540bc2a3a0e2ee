from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ChatRef:
    chat_id: int | str
    kind: str = "private"
    thread_id: int | None = None

    @property
    def is_group(self) -> bool:
        return self.kind in {"group", "supergroup"}

    @property
    def in_thread(self) -> bool:
        return self.thread_id is not None


@dataclass(frozen=True)
class ChatMessage:
    chat: ChatRef
    user_id: int | str
    text: str


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    image_count: int


class ChatTransport(Protocol):
    def send_message(self, chat: ChatRef, text: str) -> None: ...

    def send_sticker(self, chat: ChatRef, payload: bytes) -> None: ...

    def is_admin(self, chat: ChatRef, user_id: int | str) -> bool: ...


class GenerationService(Protocol):
    def submit_generation_job(self, request: GenerationRequest) -> list[str]:
        """Run a generation job to completion and return the result image URLs."""
        ...
