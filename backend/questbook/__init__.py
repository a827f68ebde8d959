"""Questbook: turn-based combat and dice engine for a single-player adventure."""

__version__ = "0.1.0"
