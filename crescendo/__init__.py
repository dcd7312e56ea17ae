"""Crescendo: real-time pitch estimation and note judgment for instrument practice."""

__version__ = "0.1.0"
