"""Service layer around the signal engine: settings, YAML overrides, async facade."""

from signal_service.config import Settings, configure_logging, get_settings
from signal_service.engine_config import build_engine, load_engine_config
from signal_service.service import MultiTimeframeResult, SignalService

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "load_engine_config",
    "build_engine",
    "SignalService",
    "MultiTimeframeResult",
]
