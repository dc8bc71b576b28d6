"""
tests/test_audit.py — Unit Tests for the Audit Log Channel
==========================================================

Tests the sliding-window throttle and best-effort delivery to the
configured log channel.
"""

from __future__ import annotations

import asyncio
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import discord
from conftest import http_error, run_async

from forumxp.services.audit_service import log_to_channel, resolve_log_channel
from forumxp.services.throttle import MessageThrottle


def _make_bot(log_channel_id: int | None = 100, channels: dict | None = None) -> MagicMock:
    bot = MagicMock()
    bot.cfg = SimpleNamespace(log_channel_id=log_channel_id)
    bot.get_channel = lambda ch_id: (channels or {}).get(ch_id)
    bot.fetch_channel = AsyncMock(side_effect=http_error(discord.NotFound, 404))
    return bot


def _make_messageable(channel_id: int = 100) -> MagicMock:
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = channel_id
    ch.send = AsyncMock()
    return ch


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ===========================================================================
# Test: MessageThrottle
# ===========================================================================
class TestMessageThrottle:
    def test_allows_up_to_max(self):
        throttle = MessageThrottle(max_per_window=3, window=60)
        assert throttle.try_acquire(100) is True
        assert throttle.try_acquire(100) is True
        assert throttle.try_acquire(100) is True
        assert throttle.try_acquire(100) is False

    def test_different_channels_independent(self):
        throttle = MessageThrottle(max_per_window=1, window=60)
        assert throttle.try_acquire(100) is True
        assert throttle.try_acquire(100) is False
        assert throttle.try_acquire(200) is True

    def test_window_slides(self):
        clock = FakeClock()
        throttle = MessageThrottle(max_per_window=1, window=5, clock=clock)
        assert throttle.try_acquire(100) is True
        clock.now += 4.9
        assert throttle.try_acquire(100) is False
        clock.now += 0.2
        assert throttle.try_acquire(100) is True

    def test_defer(self):
        throttle = MessageThrottle(max_per_window=1, window=60)
        throttle.defer(100, "line", _make_messageable(100))
        assert throttle.backlog_size(100) == 1
        assert throttle.backlog_size(200) == 0

    def test_full_backlog_drops_oldest(self, caplog):
        throttle = MessageThrottle(max_backlog=2)
        ch = _make_messageable(100)
        with caplog.at_level(logging.WARNING):
            for line in ("one", "two", "three"):
                throttle.defer(100, line, ch)

        assert throttle.backlog_size(100) == 2
        assert throttle.dropped(100) == 1
        assert "dropping the oldest line" in caplog.text

        run_async(throttle.flush_once())
        assert [c.args[0] for c in ch.send.await_args_list] == ["two", "three"]

    def test_flush_respects_window(self):
        clock = FakeClock()
        throttle = MessageThrottle(max_per_window=1, window=5, clock=clock)
        ch = _make_messageable(100)
        throttle.try_acquire(100)
        throttle.defer(100, "first", ch)
        throttle.defer(100, "second", ch)

        assert run_async(throttle.flush_once()) == 0
        clock.now += 5
        assert run_async(throttle.flush_once()) == 1
        ch.send.assert_awaited_once_with("first")
        assert throttle.backlog_size(100) == 1

    def test_flush_failure_is_logged_and_continues(self):
        throttle = MessageThrottle(max_per_window=5, window=60)
        ch = _make_messageable(100)
        ch.send.side_effect = [http_error(), None]
        throttle.defer(100, "lost", ch)
        throttle.defer(100, "kept", ch)
        assert run_async(throttle.flush_once()) == 1
        assert throttle.backlog_size(100) == 0

    def test_flush_loop_runs_once_per_window(self):
        async def _inner():
            throttle = MessageThrottle(max_per_window=1, window=0.05)
            ch = _make_messageable(100)
            throttle.try_acquire(100)
            throttle.defer(100, "held", ch)
            throttle.start(asyncio.get_running_loop())
            await asyncio.sleep(0.2)
            throttle.stop()
            ch.send.assert_awaited_once_with("held")
            assert throttle._flush_task is None

        run_async(_inner())


# ===========================================================================
# Test: log channel delivery
# ===========================================================================
class TestLogToChannel:
    def test_no_channel_configured(self):
        bot = _make_bot(log_channel_id=None)
        assert run_async(resolve_log_channel(bot)) is None

    def test_unfetchable_channel(self):
        bot = _make_bot(log_channel_id=100, channels={})
        assert run_async(resolve_log_channel(bot)) is None

    def test_non_text_channel_rejected(self):
        category = MagicMock(spec=discord.CategoryChannel)
        bot = _make_bot(channels={100: category})
        assert run_async(resolve_log_channel(bot)) is None

    def test_sends_line(self):
        ch = _make_messageable(100)
        bot = _make_bot(channels={100: ch})
        with patch("forumxp.services.audit_service._throttle", MessageThrottle()):
            run_async(log_to_channel(bot, "hello"))
        ch.send.assert_awaited_once_with("hello")

    def test_overflow_is_held_in_order(self):
        ch = _make_messageable(100)
        bot = _make_bot(channels={100: ch})
        throttle = MessageThrottle(max_per_window=1, window=60)
        with patch("forumxp.services.audit_service._throttle", throttle):
            run_async(log_to_channel(bot, "one"))
            run_async(log_to_channel(bot, "two"))
        ch.send.assert_awaited_once_with("one")
        assert throttle.backlog_size(100) == 1

    def test_send_failure_is_swallowed(self):
        ch = _make_messageable(100)
        ch.send.side_effect = http_error(discord.Forbidden, 403)
        bot = _make_bot(channels={100: ch})
        with patch("forumxp.services.audit_service._throttle", MessageThrottle()):
            run_async(log_to_channel(bot, "hello"))
        ch.send.assert_awaited_once()

    def test_new_line_waits_behind_held_lines(self):
        clock = FakeClock()
        ch = _make_messageable(100)
        bot = _make_bot(channels={100: ch})
        throttle = MessageThrottle(max_per_window=1, window=5, clock=clock)
        with patch("forumxp.services.audit_service._throttle", throttle):
            run_async(log_to_channel(bot, "one"))
            run_async(log_to_channel(bot, "two"))
            clock.now += 5
            run_async(log_to_channel(bot, "three"))
            assert throttle.backlog_size(100) == 2
            run_async(throttle.flush_once())
        assert [c.args[0] for c in ch.send.await_args_list] == ["one", "two"]
