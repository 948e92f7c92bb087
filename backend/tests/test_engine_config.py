"""Tests for settings and engine.yaml loading."""

import logging
import textwrap

import pytest
from pydantic import ValidationError

from signal_core.models import DEFAULT_PROFILES, EngineConfig
from signal_service.config import Settings, configure_logging
from signal_service.engine_config import build_engine, load_engine_config


def _write(tmp_path, content: str):
    path = tmp_path / "engine.yaml"
    path.write_text(textwrap.dedent(content))
    return path


class TestLoadEngineConfig:
    """Tests for load_engine_config."""

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_engine_config(tmp_path / "missing.yaml")
        assert config == EngineConfig()

    def test_empty_file_uses_defaults(self, tmp_path):
        config = load_engine_config(_write(tmp_path, ""))
        assert config.min_candles == 50
        assert config.profiles == DEFAULT_PROFILES

    def test_top_level_and_period_overrides(self, tmp_path):
        path = _write(tmp_path, """
            min_candles: 60
            score_floor: 40
            periods:
              rsi: 21
        """)
        config = load_engine_config(path)

        assert config.min_candles == 60
        assert config.score_floor == 40
        assert config.periods.rsi == 21
        assert config.periods.macd_slow == 26

    def test_profile_overrides_merge_onto_defaults(self, tmp_path):
        path = _write(tmp_path, """
            profiles:
              1h:
                confidence_threshold: 80
              2h:
                confidence_threshold: 72
                fallback_period: 4
        """)
        config = load_engine_config(path)

        hourly = config.profile_for("1h")
        assert hourly.confidence_threshold == 80
        assert hourly.override_threshold == DEFAULT_PROFILES["1h"].override_threshold
        assert config.profile_for("2h").fallback_period == 4
        assert config.profile_for("4h") == DEFAULT_PROFILES["4h"]

    def test_invalid_values_raise(self, tmp_path):
        path = _write(tmp_path, """
            profiles:
              1h:
                confidence_threshold: 150
        """)
        with pytest.raises(ValidationError):
            load_engine_config(path)

    def test_out_of_range_field_raises(self, tmp_path):
        path = _write(tmp_path, "min_candles: 1\n")
        with pytest.raises(ValidationError):
            load_engine_config(path)


class TestBuildEngine:
    def test_settings_override_yaml(self, tmp_path):
        path = _write(tmp_path, "min_candles: 60\n")
        settings = Settings(engine_config_path=str(path), min_candles=30, learning_rate=0.2)

        engine = build_engine(settings)

        assert engine.config.min_candles == 30
        assert engine.config.learning_rate == 0.2
        assert engine.weights.config.learning_rate == 0.2

    def test_cache_capacity_from_settings(self, tmp_path):
        settings = Settings(
            engine_config_path=str(tmp_path / "none.yaml"), cache_max_entries=5
        )
        engine = build_engine(settings)
        assert engine.cache.max_entries == 5

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("SIGNAL_MIN_CANDLES", "75")
        monkeypatch.setenv("SIGNAL_LOG_LEVEL", "DEBUG")
        settings = Settings()
        assert settings.min_candles == 75
        assert settings.log_level == "DEBUG"


class TestConfigureLogging:
    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))

        configure_logging("verbose")
        configure_logging("debug")

        assert calls[0]["level"] == logging.INFO
        assert calls[1]["level"] == logging.DEBUG
