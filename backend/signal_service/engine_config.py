"""Engine configuration loaded from engine.yaml.

Supports:
- Top-level EngineConfig fields (min_candles, score_floor, cache_max_entries, ...)
- ``periods``: indicator period overrides
- ``profiles``: per-timeframe overrides merged onto DEFAULT_PROFILES;
  timeframes not in the defaults become new profiles
- No YAML file = defaults
"""

import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv

from signal_core.engine import SignalEngine
from signal_core.models.config import DEFAULT_PROFILES, EngineConfig, TimeframeProfile
from signal_service.config import Settings, get_settings

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path(__file__).parent.parent / "engine.yaml"


def _merge_profiles(overrides: dict) -> dict[str, TimeframeProfile]:
    profiles = dict(DEFAULT_PROFILES)
    for timeframe, values in (overrides or {}).items():
        base = profiles.get(timeframe) or TimeframeProfile()
        merged = {**base.model_dump(), **(values or {})}
        profiles[timeframe] = TimeframeProfile.model_validate(merged)
    return profiles


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load engine config from YAML file.

    Falls back to defaults if the file doesn't exist. Invalid values raise
    pydantic ``ValidationError``.
    """
    config_path = Path(path) if path else _DEFAULT_PATH

    env_path = config_path.parent / ".env"
    load_dotenv(env_path, override=False)

    if not config_path.exists():
        logger.info("No engine.yaml found at %s, using defaults", config_path)
        return EngineConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = dict(raw)
    profiles = _merge_profiles(raw.pop("profiles", None) or {})
    config = EngineConfig(**raw, profiles=profiles)
    logger.info(
        "Loaded engine config from %s: %d profiles, min_candles=%d",
        config_path,
        len(config.profiles),
        config.min_candles,
    )
    return config


def build_engine(settings: Settings | None = None) -> SignalEngine:
    """Wire environment settings and engine.yaml into a SignalEngine."""
    settings = settings or get_settings()
    path = Path(settings.engine_config_path) if settings.engine_config_path else None
    config = load_engine_config(path)

    overrides = {
        name: getattr(settings, name)
        for name in ("min_candles", "cache_max_entries", "learning_rate", "min_learning_samples")
        if getattr(settings, name) is not None
    }
    if overrides:
        config = EngineConfig.model_validate({**config.model_dump(), **overrides})
        logger.info("Applied environment overrides: %s", overrides)

    return SignalEngine(config)
