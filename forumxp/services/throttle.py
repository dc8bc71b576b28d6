"""
forumxp.services.throttle — Audit Log Send Throttle
===================================================

Keeps bursts of audit lines (a run of pins, a sweep closing twenty posts)
under Discord's per-channel rate limit.  Each channel gets a sliding
window of ``max_per_window`` sends per ``window`` seconds; lines over the
limit wait in a bounded backlog that is flushed once per window.

The backlog holds at most ``max_backlog`` lines per channel.  When it is
full the oldest line is dropped: audit lines are a convenience mirror of
the process log, so the newest activity is what moderators want to see.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable

from discord.abc import Messageable

logger = logging.getLogger(__name__)


class MessageThrottle:
    """Per-channel sliding-window limiter with a bounded overflow backlog.

    Parameters
    ----------
    max_per_window:
        Sends allowed per channel inside one window.
    window:
        Window length in seconds; also the backlog flush interval.
    max_backlog:
        Lines kept per channel while throttled.  Oldest lines are dropped.
    clock:
        Time source, injectable for tests.
    """

    def __init__(
        self,
        max_per_window: int = 5,
        window: float = 5.0,
        max_backlog: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_per_window = max_per_window
        self.window = window
        self.max_backlog = max_backlog
        self._clock = clock
        self._sent: dict[int, deque[float]] = {}
        self._backlog: dict[int, deque[tuple[str, Messageable]]] = {}
        self._dropped: dict[int, int] = {}
        self._flush_task: asyncio.Task | None = None

    # -------------------------------------------------------------------
    # Window accounting
    # -------------------------------------------------------------------
    def try_acquire(self, channel_id: int) -> bool:
        """Claim a send slot for *channel_id*; False when the window is full."""
        now = self._clock()
        sent = self._sent.setdefault(channel_id, deque())
        while sent and sent[0] <= now - self.window:
            sent.popleft()
        if len(sent) >= self.max_per_window:
            return False
        sent.append(now)
        return True

    # -------------------------------------------------------------------
    # Backlog
    # -------------------------------------------------------------------
    def defer(self, channel_id: int, content: str, channel: Messageable) -> None:
        """Hold *content* until the channel's window reopens."""
        backlog = self._backlog.setdefault(channel_id, deque(maxlen=self.max_backlog))
        if len(backlog) == backlog.maxlen:
            self._dropped[channel_id] = self._dropped.get(channel_id, 0) + 1
            logger.warning(
                "Audit backlog for channel %d is full (%d lines), dropping the oldest line",
                channel_id, self.max_backlog,
            )
        backlog.append((content, channel))

    def backlog_size(self, channel_id: int) -> int:
        backlog = self._backlog.get(channel_id)
        return len(backlog) if backlog else 0

    def dropped(self, channel_id: int) -> int:
        """Lines discarded for *channel_id* because its backlog was full."""
        return self._dropped.get(channel_id, 0)

    async def flush_once(self) -> int:
        """Send as many held lines as the open windows allow; returns how many."""
        sent = 0
        for channel_id, backlog in list(self._backlog.items()):
            while backlog and self.try_acquire(channel_id):
                content, channel = backlog.popleft()
                try:
                    await channel.send(content)
                    sent += 1
                except Exception:
                    logger.exception("Failed to send held audit line to channel %d", channel_id)
        return sent

    # -------------------------------------------------------------------
    # Background flush
    # -------------------------------------------------------------------
    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Flush the backlog once per window until :meth:`stop`."""
        if self._flush_task is not None:
            return

        async def _flush_loop() -> None:
            while True:
                await asyncio.sleep(self.window)
                try:
                    await self.flush_once()
                except Exception:
                    logger.exception("Audit backlog flush failed")

        self._flush_task = loop.create_task(_flush_loop())

    def stop(self) -> None:
        if self._flush_task is not None:
            self._flush_task.cancel()
            self._flush_task = None
