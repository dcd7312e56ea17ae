"""Core components for the Crescendo application."""

# Import interfaces for easier access
from .interfaces import (
    ISignalSource,
    IPitchDetectionMethod,
)

__all__ = ["ISignalSource", "IPitchDetectionMethod"]
