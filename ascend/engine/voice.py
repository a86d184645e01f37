"""
ascend.engine.voice — Voice tick eligibility
=============================================

Decides who earns voice XP on a tick.  A member counts when they are a
human, not muted or deafened (self or server), and not parked in the
guild's AFK channel.  A channel only pays out when at least two such
members are present, so a lone member idling in voice earns nothing.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ascend.engine.events import VoiceMemberState

MIN_ELIGIBLE_PER_CHANNEL = 2


def is_muted_or_deafened(state: VoiceMemberState) -> bool:
    return (
        state.self_mute
        or state.server_mute
        or state.self_deaf
        or state.server_deaf
    )


def is_eligible_voice_member(state: VoiceMemberState) -> bool:
    """Member-level filter (channel population is checked separately)."""
    return not state.bot and not is_muted_or_deafened(state)


def eligible_voice_members(
    channels: Mapping[int, Iterable[VoiceMemberState]],
    *,
    afk_channel_id: int | None = None,
) -> dict[int, list[int]]:
    """Return ``channel_id → [user_id, …]`` for channels that qualify.

    Channels with fewer than :data:`MIN_ELIGIBLE_PER_CHANNEL` eligible
    members are left out entirely.  Ineligible members in a qualifying
    channel are excluded without disqualifying the others.
    """
    result: dict[int, list[int]] = {}
    for channel_id, members in channels.items():
        if afk_channel_id is not None and channel_id == afk_channel_id:
            continue
        eligible = [m.user_id for m in members if is_eligible_voice_member(m)]
        if len(eligible) >= MIN_ELIGIBLE_PER_CHANNEL:
            result[channel_id] = eligible
    return result
