"""
ascend.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for **infrastructure-only** settings (command
prefix, dashboard port, scheduler timing).  All gameplay tuning values
(XP rates, cooldowns, decay, level curve) live per guild in the
``guild_settings`` table and are edited with slash commands.

Usage::

    from ascend.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.decay_hour_utc)    # 4
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object: infrastructure only.
# Gameplay tuning lives in the DB ``guild_settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AscendConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord
    bot_prefix: str

    # Dashboard / API
    dashboard_port: int = 8000

    # Scheduling
    decay_hour_utc: int = 4          # Daily decay pass fires at HH:00 UTC
    cooldown_sweep_minutes: int = 10


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> AscendConfig:
    """Read *path* and return an :class:`AscendConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``decay_hour_utc`` is outside 0–23.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    decay_hour = int(raw.get("decay_hour_utc", 4))
    if not 0 <= decay_hour <= 23:
        raise ValueError(f"decay_hour_utc must be between 0 and 23, got {decay_hour}")

    return AscendConfig(
        bot_prefix=raw["bot_prefix"],
        dashboard_port=int(raw.get("dashboard_port", 8000)),
        decay_hour_utc=decay_hour,
        cooldown_sweep_minutes=int(raw.get("cooldown_sweep_minutes", 10)),
    )
