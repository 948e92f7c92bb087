"""Core multi-timeframe signal engine: indicators, scoring, stabilization.

This package contains pure business logic with no I/O dependencies
(no database, Redis, or network access). Candle history is supplied by
the caller and realized outcomes come back through ``SignalEngine.learn``.
"""

from signal_core.engine import SignalEngine

__all__ = ["SignalEngine"]
