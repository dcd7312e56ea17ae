"""Command-line interface for Crescendo."""

# Import CLI modules for easier access
from .main import cli

__all__ = ["cli"]
