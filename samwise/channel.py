"""Status messages and the channel that carries them to the presence session.

The poll loop is the only producer and the session thread the only consumer.
Messages are delivered in send order, each exactly once. Closing the channel
lets the consumer drain what is queued and then observe ``None``.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Union

from .errors import ChannelClosedError


@dataclass(frozen=True)
class SetStatus:
    """Show ``text`` as the presence details line."""

    text: str


@dataclass(frozen=True)
class Clear:
    """Remove the presence activity."""


StatusMessage = Union[SetStatus, Clear]


class StatusChannel:
    """Unbounded FIFO handoff between two threads.

    ``send`` never blocks. ``receive`` blocks until a message is queued or the
    channel is closed and empty, in which case it returns ``None``.
    """

    def __init__(self) -> None:
        self._items: deque[StatusMessage] = deque()
        self._cond = threading.Condition()
        self._closed = False

    def send(self, message: StatusMessage) -> None:
        with self._cond:
            if self._closed:
                raise ChannelClosedError(f"status channel closed, cannot send {message!r}")
            self._items.append(message)
            self._cond.notify()

    def receive(self, timeout: float | None = None) -> StatusMessage | None:
        """Return the next message, or ``None`` once closed and drained.

        With a ``timeout``, ``TimeoutError`` is raised if nothing arrives in time.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._items or self._closed, timeout):
                raise TimeoutError("no status message received")
            if self._items:
                return self._items.popleft()
            return None

    def close(self) -> None:
        """Close the channel (idempotent). Queued messages stay receivable."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)
