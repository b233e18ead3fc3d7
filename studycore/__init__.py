"""Spaced-repetition scheduling engine for the study application."""

__version__ = "0.1.0"
