"""
tests/test_pings.py — Unit Tests for Role-Ping Triggers
=======================================================
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from conftest import http_error, make_role, run_async

from forumxp.bot.cogs.pings import Pings
from forumxp.config import RolePingTrigger
from forumxp.services.ping_service import (
    build_ping_message,
    configured_ping_roles,
    matching_triggers,
)

RAID = RolePingTrigger(trigger_role_id=10, name="Raid", ping_roles=("201", "202", "YOUR_ROLE"))
SALE = RolePingTrigger(trigger_role_id=11, name="Sale", ping_roles=("301",), message="Sale!\n||")


class TestPingService:
    def test_matching_triggers_in_config_order(self):
        assert matching_triggers([RAID, SALE], [11, 10]) == [RAID, SALE]
        assert matching_triggers([RAID, SALE], [99]) == []

    def test_placeholders_dropped(self):
        assert configured_ping_roles(RAID) == ["201", "202"]

    def test_default_message(self):
        assert build_ping_message(RAID) == "Notifying roles:\n\n||<@&201> <@&202> ||"

    def test_custom_message(self):
        assert build_ping_message(SALE) == "Sale!\n||<@&301> ||"

    def test_nothing_to_ping(self):
        empty = RolePingTrigger(trigger_role_id=12, name="Empty", ping_roles=("LFKIN_ROLE_DPS",))
        assert build_ping_message(empty) is None


def _make_bot(triggers) -> MagicMock:
    bot = MagicMock()
    bot.cfg = SimpleNamespace(role_ping_triggers=tuple(triggers))
    bot.audit = AsyncMock()
    return bot


def _make_message(role_ids, *, bot_author: bool = False) -> SimpleNamespace:
    channel = MagicMock()
    channel.name = "general"
    channel.send = AsyncMock()
    return SimpleNamespace(
        id=1,
        author=SimpleNamespace(bot=bot_author),
        role_mentions=[make_role(rid) for rid in role_ids],
        channel=channel,
    )


class TestPingsCog:
    def test_trigger_mention_sends_one_message(self):
        cog = Pings(_make_bot([RAID]))
        message = _make_message([10])
        run_async(cog.on_message(message))
        message.channel.send.assert_awaited_once_with("Notifying roles:\n\n||<@&201> <@&202> ||")
        cog.bot.audit.assert_awaited_once()

    def test_bot_authors_ignored(self):
        cog = Pings(_make_bot([RAID]))
        message = _make_message([10], bot_author=True)
        run_async(cog.on_message(message))
        message.channel.send.assert_not_awaited()

    def test_unrelated_mention_ignored(self):
        cog = Pings(_make_bot([RAID]))
        message = _make_message([77])
        run_async(cog.on_message(message))
        message.channel.send.assert_not_awaited()

    def test_each_matching_trigger_fires(self):
        cog = Pings(_make_bot([RAID, SALE]))
        message = _make_message([10, 11])
        run_async(cog.on_message(message))
        assert message.channel.send.await_count == 2

    def test_send_failure_is_contained(self):
        cog = Pings(_make_bot([RAID, SALE]))
        message = _make_message([10, 11])
        message.channel.send.side_effect = [http_error(), None]
        run_async(cog.on_message(message))
        assert message.channel.send.await_count == 2
