"""
ascend.engine.events — Normalized Payloads & Result Envelopes
==============================================================

Every Discord input is normalized before it reaches the services, and
every service answers with one of these small dataclasses.  Nothing here
imports discord.py, so the engine and services can be tested without a
gateway connection.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["AwardResult", "DecayChange", "VoiceAward", "VoiceMemberState"]


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class VoiceMemberState:
    """One member's voice presence at tick time."""

    user_id: int
    bot: bool = False
    self_mute: bool = False
    server_mute: bool = False
    self_deaf: bool = False
    server_deaf: bool = False


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AwardResult:
    """Outcome of a single message or reaction event.

    When ``awarded`` is False, ``new_xp`` / ``new_level`` report the
    member's unchanged standing.
    """

    awarded: bool
    new_xp: int
    new_level: int


@dataclass(frozen=True, slots=True)
class VoiceAward:
    """One member credited by a voice tick."""

    user_id: int
    channel_id: int
    new_xp: int
    new_level: int


@dataclass(frozen=True, slots=True)
class DecayChange:
    """One member whose XP was reduced by a decay pass."""

    user_id: int
    old_xp: int
    new_xp: int
    new_level: int
