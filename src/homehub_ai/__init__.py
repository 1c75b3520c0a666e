"""HomeHub AI inference orchestration."""

__version__ = "0.3.0"
