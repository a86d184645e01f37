"""
Ascend — Per-Guild Activity Scoring & Level Roles for Discord
==============================================================
Accrues XP from messages, reactions, and voice presence, derives a level
from accumulated XP, decays XP for inactive members, and keeps level roles
in sync with a grace period before demotion.

Package layout::

    ascend/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Shared limits, defaults, time helpers
    ├── errors.py          # ValidationError / StorageError / PlatformActionError
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models (6 tables)
    ├── engine/
    │   ├── events.py      # Normalized payloads + result envelopes
    │   ├── levels.py      # Level curve (pure)
    │   ├── cooldowns.py   # Per-user award cooldown tracker
    │   ├── voice.py       # Voice tick eligibility (pure)
    │   └── roles.py       # Level → role state machine (pure)
    ├── services/
    │   ├── settings_service.py     # Per-guild tunables
    │   ├── score_service.py        # XP ledger + activity log
    │   ├── award_service.py        # Message / reaction / voice awards
    │   ├── decay_service.py        # Daily decay pass
    │   ├── level_role_service.py   # Level → role mappings
    │   ├── role_sync_service.py    # Drop-grace timers + sync decisions
    │   ├── role_actions.py         # Discord grant/revoke with explicit results
    │   └── command_channel_service.py  # Allowed command channels
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader
    │   └── cogs/
    │       ├── events.py  # on_message / on_raw_reaction_add award pipeline
    │       ├── voice.py   # Minute-aligned voice tick
    │       ├── tasks.py   # Daily decay + cooldown sweep
    │       └── commands.py  # /xp, /leaderboard, admin configuration
    └── api/
        ├── main.py        # FastAPI app
        └── routes/        # Read-only public endpoints
"""

__version__ = "0.1.0"
