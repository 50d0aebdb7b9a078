"""Staged multi-scene dialogue controller for chat bots."""

__version__ = "1.0.0"
