"""
tests/test_maintenance.py — Unit Tests for the Forum Thread Sweep
=================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import discord
from conftest import FORUM_ID, http_error, make_config, run_async

from forumxp.bot.cogs.tasks import MaintenanceTasks
from forumxp.services.maintenance_service import (
    fetch_forum_threads,
    sweep_threads,
    thread_age_hours,
    thread_created_at,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def _make_thread(
    thread_id: int = 1,
    *,
    age_hours: float = 0,
    locked: bool = False,
    archived: bool = False,
    parent_id: int = FORUM_ID,
) -> MagicMock:
    thread = MagicMock(spec=discord.Thread)
    thread.id = thread_id
    thread.name = f"post-{thread_id}"
    thread.parent_id = parent_id
    thread.created_at = NOW - timedelta(hours=age_hours)
    thread.locked = locked
    thread.archived = archived

    async def _edit(**fields):
        for key, value in fields.items():
            setattr(thread, key, value)

    thread.edit = AsyncMock(side_effect=_edit)
    return thread


def _sweep(threads, **kwargs):
    return run_async(sweep_threads(threads, now=NOW, **kwargs))


class TestSweepThreads:
    def test_old_thread_locked_then_archived_in_one_pass(self):
        thread = _make_thread(age_hours=30)
        report = _sweep([thread], lock_after_hours=24, close_after_hours=12)

        assert thread.locked and thread.archived
        assert [c.kwargs for c in thread.edit.await_args_list] == [{"locked": True}, {"archived": True}]
        assert report.locked == [1]
        assert report.archived == [1]

    def test_lock_only_when_already_archived(self):
        thread = _make_thread(age_hours=30, archived=True)
        report = _sweep([thread], lock_after_hours=24)
        thread.edit.assert_awaited_once_with(locked=True)
        assert report.archived == []

    def test_close_only(self):
        thread = _make_thread(age_hours=13)
        report = _sweep([thread], lock_after_hours=24, close_after_hours=12)
        thread.edit.assert_awaited_once_with(archived=True)
        assert not thread.locked
        assert report.archived == [1]
        assert report.locked == []

    def test_young_thread_untouched(self):
        thread = _make_thread(age_hours=1)
        report = _sweep([thread], lock_after_hours=24, close_after_hours=12)
        thread.edit.assert_not_awaited()
        assert report.checked == 1

    def test_already_locked_and_archived_untouched(self):
        thread = _make_thread(age_hours=100, locked=True, archived=True)
        _sweep([thread], lock_after_hours=24, close_after_hours=12)
        thread.edit.assert_not_awaited()

    def test_locked_but_open_thread_is_closed(self):
        thread = _make_thread(age_hours=100, locked=True)
        _sweep([thread], lock_after_hours=24, close_after_hours=12)
        thread.edit.assert_awaited_once_with(archived=True)

    def test_excluded_threads_skipped(self):
        thread = _make_thread(7, age_hours=100)
        report = _sweep([thread], lock_after_hours=1, excluded_ids=frozenset({7}))
        thread.edit.assert_not_awaited()
        assert report.skipped == [7]
        assert report.checked == 0

    def test_disabled_windows_do_nothing(self):
        thread = _make_thread(age_hours=10_000)
        _sweep([thread])
        thread.edit.assert_not_awaited()

    def test_error_on_one_thread_does_not_stop_sweep(self):
        broken = _make_thread(1, age_hours=30)
        broken.edit = AsyncMock(side_effect=http_error(discord.Forbidden, 403))
        healthy = _make_thread(2, age_hours=30)

        report = _sweep([broken, healthy], close_after_hours=12)

        assert report.errors == [1]
        assert report.archived == [2]
        assert healthy.archived

    def test_actions_are_reported(self):
        sink = AsyncMock()
        _sweep([_make_thread(age_hours=30)], lock_after_hours=24, on_action=sink)
        lines = [c.args[0] for c in sink.await_args_list]
        assert "Locked thread" in lines[0]
        assert "Closed thread" in lines[1]

    def test_failing_sink_does_not_stop_sweep(self):
        sink = AsyncMock(side_effect=RuntimeError("log channel down"))
        thread = _make_thread(age_hours=30)
        report = _sweep([thread], close_after_hours=12, on_action=sink)
        assert report.archived == [1]
        assert report.errors == []


class TestThreadAge:
    def test_falls_back_to_snowflake_time(self):
        thread = _make_thread()
        thread.created_at = None
        thread.id = discord.utils.time_snowflake(NOW - timedelta(hours=5))
        assert round(thread_age_hours(thread, NOW)) == 5

    def test_naive_timestamps_treated_as_utc(self):
        thread = _make_thread()
        thread.created_at = datetime(2025, 6, 1, 10, 0)
        assert thread_created_at(thread).tzinfo is UTC
        assert thread_age_hours(thread, NOW) == 2


class TestFetchForumThreads:
    def test_filters_on_parent(self):
        ours = _make_thread(1)
        other = _make_thread(2, parent_id=999)
        guild = MagicMock()
        guild.active_threads = AsyncMock(return_value=[ours, other])
        assert run_async(fetch_forum_threads(guild, FORUM_ID)) == [ours]


class TestMaintenanceCog:
    def _bot(self, cfg, guild):
        bot = MagicMock()
        bot.cfg = cfg
        bot.audit = AsyncMock()
        bot.primary_guild = MagicMock(return_value=guild)
        return bot

    def test_run_sweep_uses_configured_windows(self):
        thread = _make_thread(age_hours=1000)
        thread.created_at = datetime.now(UTC) - timedelta(hours=1000)
        guild = MagicMock()
        guild.active_threads = AsyncMock(return_value=[thread])
        cog = MaintenanceTasks(self._bot(make_config(close_time_hours=48), guild))

        report = run_async(cog.run_sweep())

        assert report.archived == [thread.id]
        cog.bot.audit.assert_awaited()

    def test_run_sweep_without_guild(self):
        cog = MaintenanceTasks(self._bot(make_config(close_time_hours=48), None))
        assert run_async(cog.run_sweep()) is None

    def test_loop_not_started_when_disabled(self):
        cog = MaintenanceTasks(self._bot(make_config(), MagicMock()))
        run_async(cog.cog_load())
        assert not cog.maintenance_loop.is_running()
