from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from threading import Condition
from time import monotonic

from stickerbot.domain.collaborators import ChatMessage


class AlreadyQueuedError(Exception):
    def __init__(self, user_id: int | str) -> None:
        super().__init__(f"User {user_id} already has a pending request")
        self.user_id = user_id


@dataclass(frozen=True)
class StickerRequest:
    message: ChatMessage
    prompt: str

    @property
    def user_id(self) -> int | str:
        return self.message.user_id


class RequestScheduler:
    """FIFO request queue with at most one request in flight.

    A user stays pending from ``submit`` until ``complete`` is called for their
    request, so a second submission is rejected even while the first is running.
    """

    def __init__(self) -> None:
        self._condition = Condition()
        self._queue: deque[StickerRequest] = deque()
        self._pending: set[int | str] = set()
        self._in_flight: StickerRequest | None = None

    def submit(self, request: StickerRequest) -> int:
        with self._condition:
            if request.user_id in self._pending:
                raise AlreadyQueuedError(request.user_id)
            self._queue.append(request)
            self._pending.add(request.user_id)
            position = len(self._queue)
            self._condition.notify()
            return position

    def next_request(self, timeout: float | None = None) -> StickerRequest | None:
        """Pop the head of the queue once nothing is in flight, or return None on timeout."""
        deadline = None if timeout is None else monotonic() + timeout
        with self._condition:
            while self._in_flight is not None or not self._queue:
                remaining = None if deadline is None else deadline - monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                self._condition.wait(remaining)
            self._in_flight = self._queue.popleft()
            return self._in_flight

    def complete(self, request: StickerRequest) -> None:
        with self._condition:
            self._pending.discard(request.user_id)
            if self._in_flight is request:
                self._in_flight = None
            self._condition.notify_all()

    def position(self, user_id: int | str) -> int | None:
        with self._condition:
            for index, request in enumerate(self._queue, start=1):
                if request.user_id == user_id:
                    return index
            return None

    def is_pending(self, user_id: int | str) -> bool:
        with self._condition:
            return user_id in self._pending

    @property
    def is_busy(self) -> bool:
        with self._condition:
            return self._in_flight is not None

    def __len__(self) -> int:
        with self._condition:
            return len(self._queue)
