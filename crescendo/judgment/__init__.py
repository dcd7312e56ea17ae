"""Temporal judgment of pitch estimates against a note schedule."""
