"""
tests/test_bot_cogs.py — Cog Handler Tests
===========================================

Exercises cog handlers against mock Discord objects and the in-memory
database, without a gateway connection.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from ascend.bot.cogs.commands import clamp_leaderboard_limit, decay_fraction_from_percent
from ascend.bot.cogs.events import ActivityEvents
from ascend.bot.cogs.tasks import PeriodicTasks
from ascend.bot.cogs.voice import Voice, snapshot_voice_channels
from ascend.engine.cooldowns import CooldownRegistry
from ascend.services.level_role_service import upsert_level_role
from ascend.services.score_service import get_xp, set_xp

from conftest import GUILD_ID, T0, run_async


def _make_bot(engine) -> SimpleNamespace:
    return SimpleNamespace(engine=engine, cooldowns=CooldownRegistry())


def _voice_member(user_id: int, *, bot: bool = False, self_mute: bool = False):
    member = MagicMock()
    member.id = user_id
    member.bot = bot
    member.voice = SimpleNamespace(self_mute=self_mute, mute=False, self_deaf=False, deaf=False)
    member.roles = []
    member.add_roles = AsyncMock()
    return member


def _guild(voice_channels=(), afk_channel=None, members=()):
    guild = MagicMock()
    guild.id = GUILD_ID
    guild.voice_channels = list(voice_channels)
    guild.afk_channel = afk_channel
    by_id = {m.id: m for m in members}
    guild.get_member = lambda uid: by_id.get(uid)
    guild.get_role = lambda rid: SimpleNamespace(id=rid)
    for m in members:
        m.guild = guild
    return guild


class TestCommandHelpers:
    def test_leaderboard_limit(self):
        assert clamp_leaderboard_limit(None) == 10
        assert clamp_leaderboard_limit(0) == 1
        assert clamp_leaderboard_limit(5) == 5
        assert clamp_leaderboard_limit(500) == 20

    def test_decay_percent_conversion(self):
        assert decay_fraction_from_percent(10) == 0.1
        assert decay_fraction_from_percent(100) == 0.95
        assert decay_fraction_from_percent(-3) == 0.0


class TestActivityEvents:
    def test_guild_message_awards_xp(self, db_engine):
        cog = ActivityEvents(_make_bot(db_engine))
        message = MagicMock()
        message.author.bot = False
        message.author.id = 42
        message.guild.id = GUILD_ID

        run_async(cog.on_message(message))
        assert get_xp(db_engine, GUILD_ID, 42) == 5

    def test_bot_and_dm_messages_ignored(self, db_engine):
        cog = ActivityEvents(_make_bot(db_engine))
        bot_msg = MagicMock()
        bot_msg.author.bot = True
        bot_msg.author.id = 1
        bot_msg.guild.id = GUILD_ID
        dm = MagicMock()
        dm.author.bot = False
        dm.author.id = 2
        dm.guild = None

        run_async(cog.on_message(bot_msg))
        run_async(cog.on_message(dm))
        assert get_xp(db_engine, GUILD_ID, 1) == 0
        assert get_xp(db_engine, GUILD_ID, 2) == 0

    def test_reaction_awards_and_syncs_roles(self, db_engine):
        upsert_level_role(db_engine, GUILD_ID, 7001, 0, 3)
        member = _voice_member(42)
        _guild(members=[member])
        cog = ActivityEvents(_make_bot(db_engine))
        payload = SimpleNamespace(
            guild_id=GUILD_ID, user_id=42, member=member, message_id=1, channel_id=2,
        )

        run_async(cog.on_raw_reaction_add(payload))

        assert get_xp(db_engine, GUILD_ID, 42) == 2
        member.add_roles.assert_awaited_once()


class TestVoiceCog:
    def test_snapshot(self):
        channel = SimpleNamespace(id=500, members=[_voice_member(1), _voice_member(2, self_mute=True)])
        empty = SimpleNamespace(id=501, members=[])
        snap = snapshot_voice_channels(_guild(voice_channels=[channel, empty]))

        assert list(snap) == [500]
        assert [s.self_mute for s in snap[500]] == [False, True]

    def test_tick_guild_credits_pair(self, db_engine):
        a, b = _voice_member(1), _voice_member(2)
        channel = SimpleNamespace(id=500, members=[a, b])
        guild = _guild(voice_channels=[channel], members=[a, b])
        cog = Voice(_make_bot(db_engine))

        run_async(cog._tick_guild(guild, T0))

        assert get_xp(db_engine, GUILD_ID, 1) == 1
        assert get_xp(db_engine, GUILD_ID, 2) == 1

    def test_tick_guild_skips_afk(self, db_engine):
        a, b = _voice_member(1), _voice_member(2)
        channel = SimpleNamespace(id=500, members=[a, b])
        guild = _guild(voice_channels=[channel], afk_channel=SimpleNamespace(id=500), members=[a, b])

        run_async(Voice(_make_bot(db_engine))._tick_guild(guild, T0))
        assert get_xp(db_engine, GUILD_ID, 1) == 0


class TestDecayTask:
    def test_decay_guild_resyncs_roles(self, db_engine):
        upsert_level_role(db_engine, GUILD_ID, 7001, 3, 0)
        set_xp(db_engine, GUILD_ID, 42, 900, now=T0)   # level 3, decays to 810 (level 2)
        member = _voice_member(42)
        member.roles = [SimpleNamespace(id=7001)]
        member.remove_roles = AsyncMock()
        guild = _guild(members=[member])

        run_async(PeriodicTasks(_make_bot(db_engine))._decay_guild(guild))

        assert get_xp(db_engine, GUILD_ID, 42) == 810
        member.remove_roles.assert_awaited_once()


class TestInFlightGuards:
    def _voice_cog(self, db_engine):
        a, b = _voice_member(1), _voice_member(2)
        guild = _guild(
            voice_channels=[SimpleNamespace(id=500, members=[a, b])], members=[a, b],
        )
        bot = _make_bot(db_engine)
        bot.guilds = [guild]
        return Voice(bot)

    def test_voice_tick_skipped_while_previous_runs(self, db_engine):
        cog = self._voice_cog(db_engine)
        cog._tick_running = True

        run_async(cog.voice_tick_loop.coro(cog))

        assert get_xp(db_engine, GUILD_ID, 1) == 0
        assert cog._tick_running is True

    def test_voice_tick_runs_and_releases_flag(self, db_engine):
        cog = self._voice_cog(db_engine)

        run_async(cog.voice_tick_loop.coro(cog))

        assert get_xp(db_engine, GUILD_ID, 1) == 1
        assert cog._tick_running is False

    def test_voice_flag_released_after_guild_failure(self, db_engine):
        cog = self._voice_cog(db_engine)

        with patch.object(cog, "_tick_guild", AsyncMock(side_effect=RuntimeError("boom"))):
            run_async(cog.voice_tick_loop.coro(cog))

        assert cog._tick_running is False

    def _decay_cog(self, db_engine):
        set_xp(db_engine, GUILD_ID, 42, 1000, now=T0)
        bot = _make_bot(db_engine)
        bot.guilds = [_guild()]
        return PeriodicTasks(bot)

    def test_decay_skipped_while_previous_runs(self, db_engine):
        cog = self._decay_cog(db_engine)
        cog._decay_running = True

        run_async(cog.decay_loop.coro(cog))

        assert get_xp(db_engine, GUILD_ID, 42) == 1000
        assert cog._decay_running is True

    def test_decay_runs_and_releases_flag(self, db_engine):
        cog = self._decay_cog(db_engine)

        run_async(cog.decay_loop.coro(cog))

        assert get_xp(db_engine, GUILD_ID, 42) == 900
        assert cog._decay_running is False

    def test_decay_flag_released_after_guild_failure(self, db_engine):
        cog = self._decay_cog(db_engine)

        with patch.object(cog, "_decay_guild", AsyncMock(side_effect=RuntimeError("boom"))):
            run_async(cog.decay_loop.coro(cog))

        assert cog._decay_running is False
        assert get_xp(db_engine, GUILD_ID, 42) == 1000
