"""
tests/test_config_loader.py — config.yaml Loader Tests
=======================================================
"""

from __future__ import annotations

import pytest

from ascend.config import AscendConfig, load_config
from ascend.database.engine import create_db_engine


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, 'bot_prefix: "!"\n'))
        assert cfg == AscendConfig(bot_prefix="!")
        assert cfg.decay_hour_utc == 4
        assert cfg.cooldown_sweep_minutes == 10

    def test_overrides(self, tmp_path):
        cfg = load_config(_write(
            tmp_path,
            'bot_prefix: "?"\ndashboard_port: 9000\ndecay_hour_utc: 0\n'
            "cooldown_sweep_minutes: 5\n",
        ))
        assert (cfg.bot_prefix, cfg.dashboard_port, cfg.decay_hour_utc) == ("?", 9000, 0)
        assert cfg.cooldown_sweep_minutes == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_prefix(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "dashboard_port: 8000\n"))

    def test_bad_decay_hour(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(_write(tmp_path, 'bot_prefix: "!"\ndecay_hour_utc: 24\n'))

    def test_frozen(self, tmp_path):
        cfg = load_config(_write(tmp_path, 'bot_prefix: "!"\n'))
        with pytest.raises(AttributeError):
            cfg.bot_prefix = "?"  # type: ignore[misc]


class TestDatabaseUrl:
    def test_missing_url_refused(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            create_db_engine()

    def test_env_url_used(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'env.db'}")
        engine = create_db_engine()
        assert engine.url.database.endswith("env.db")
        engine.dispose()
