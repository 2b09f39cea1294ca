"""Queue of HTTP responses waiting to be written on a pipelined connection."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from typing import Any

Sender = Callable[[Any], None]


class ResponseQueue:
    """Responses are written one at a time, in order, through ``sender``.

    The response at the head of the queue is the one being written; the next
    is handed to ``sender`` when ``on_write`` reports the head as finished.
    """

    def __init__(self, limit: int = 16) -> None:
        self.limit = limit
        self.sender: Sender | None = None
        self._responses: deque[Any] = deque()

    def __len__(self) -> int:
        return len(self._responses)

    def is_full(self) -> bool:
        """True once the number of queued responses reaches the limit."""
        return len(self._responses) >= self.limit

    def _send(self, message: Any) -> None:
        if self.sender is None:
            raise RuntimeError("no sender set on the response queue")
        self.sender(message)

    def on_write(self) -> bool:
        """Drop the written head and send the next one.

        Returns True when the queue was full before, meaning the caller should
        start reading again. Raises IndexError if nothing was being written.
        """
        if not self._responses:
            raise IndexError("no response is being written")
        was_full = self.is_full()
        self._responses.popleft()
        if self._responses:
            self._send(self._responses[0])
        return was_full

    def enqueue(self, message: Any) -> None:
        """Queue a response; it is sent at once if nothing else is in flight."""
        self._responses.append(message)
        if len(self._responses) == 1:
            self._send(message)