"""Pitch detection methods and their fusion."""
