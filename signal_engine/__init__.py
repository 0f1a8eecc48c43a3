"""Technical-indicator and trading-signal engine."""

__version__ = "0.1.0"
