"""Risk-aware pedestrian navigation engine."""

__version__ = "0.1.0"
