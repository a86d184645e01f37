"""
tests/test_voice_eligibility.py — Voice Tick Eligibility Tests
===============================================================
"""

from __future__ import annotations

from ascend.engine.events import VoiceMemberState
from ascend.engine.voice import eligible_voice_members, is_eligible_voice_member

CH = 500
AFK = 900


def _m(user_id: int, **kw) -> VoiceMemberState:
    return VoiceMemberState(user_id=user_id, **kw)


class TestMemberFilter:
    def test_plain_member_eligible(self):
        assert is_eligible_voice_member(_m(1))

    def test_bot_excluded(self):
        assert not is_eligible_voice_member(_m(1, bot=True))

    def test_any_mute_or_deaf_excluded(self):
        for flag in ("self_mute", "server_mute", "self_deaf", "server_deaf"):
            assert not is_eligible_voice_member(_m(1, **{flag: True})), flag


class TestChannelRule:
    def test_single_member_earns_nothing(self):
        assert eligible_voice_members({CH: [_m(1)]}) == {}

    def test_two_members_both_earn(self):
        assert eligible_voice_members({CH: [_m(1), _m(2)]}) == {CH: [1, 2]}

    def test_muted_third_member_excluded_only(self):
        result = eligible_voice_members({CH: [_m(1), _m(2), _m(3, self_mute=True)]})
        assert result == {CH: [1, 2]}

    def test_bot_does_not_count_toward_minimum(self):
        assert eligible_voice_members({CH: [_m(1), _m(2, bot=True)]}) == {}

    def test_deafened_partner_disqualifies_channel(self):
        assert eligible_voice_members({CH: [_m(1), _m(2, server_deaf=True)]}) == {}

    def test_afk_channel_never_pays(self):
        channels = {AFK: [_m(1), _m(2)], CH: [_m(3), _m(4)]}
        assert eligible_voice_members(channels, afk_channel_id=AFK) == {CH: [3, 4]}

    def test_empty(self):
        assert eligible_voice_members({}) == {}
