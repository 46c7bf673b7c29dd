"""Tests for instincts.config settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from instincts.config import InstinctSettings, get_settings
from instincts.patterns import PatternStore


def test_defaults(settings_env):
    settings = InstinctSettings()

    assert settings.store_path == Path.home() / ".claude" / "instincts" / "mobile-instincts.json"
    assert settings.strict_load is False
    assert settings.decay_days == 30
    assert settings.high_confidence_threshold == 0.7
    assert settings.log_level == "WARNING"


def test_environment_overrides(settings_env, tmp_path):
    settings_env.setenv("INSTINCTS_STORE_PATH", str(tmp_path / "custom.json"))
    settings_env.setenv("INSTINCTS_STRICT_LOAD", "true")
    settings_env.setenv("INSTINCTS_DECAY_DAYS", "14")

    settings = InstinctSettings()

    assert settings.store_path == tmp_path / "custom.json"
    assert settings.strict_load is True
    assert settings.decay_days == 14


def test_env_file(settings_env, tmp_path):
    (tmp_path / ".env").write_text("INSTINCTS_HIGH_CONFIDENCE_THRESHOLD=0.9\n", encoding="utf-8")

    assert InstinctSettings().high_confidence_threshold == 0.9


def test_get_settings_is_cached(settings_env):
    assert get_settings() is get_settings()


def test_store_from_settings(settings_env, tmp_path):
    settings = InstinctSettings(store_path=tmp_path / "s.json", strict_load=True)

    store = PatternStore.from_settings(settings)

    assert store.path == tmp_path / "s.json"


def test_log_level_is_case_insensitive(settings_env):
    settings_env.setenv("INSTINCTS_LOG_LEVEL", "debug")

    assert InstinctSettings().log_level == "DEBUG"


def test_unknown_log_level_is_rejected(settings_env):
    settings_env.setenv("INSTINCTS_LOG_LEVEL", "loud")

    with pytest.raises(ValidationError):
        InstinctSettings()
