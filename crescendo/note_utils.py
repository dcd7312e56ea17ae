"""Utility functions for working with musical notes and frequencies."""

import math
from typing import List

import numpy as np

from .logger import get_logger
from .note_types import NotePitch, UNDETECTED

logger = get_logger(__name__)

# Standard reference: A4 = 440Hz = MIDI note 69
A4_FREQUENCY = 440.0
A4_MIDI = 69

# Supported instrument range in Hz, inclusive
MIN_FREQUENCY = 20.0
MAX_FREQUENCY = 4000.0

PITCH_CLASSES: List[str] = [
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
    "A",
    "A#",
    "B",
]


def is_in_range(freq: float) -> bool:
    """Return True if freq lies in the supported 20-4000 Hz range."""
    return MIN_FREQUENCY <= freq <= MAX_FREQUENCY


def frequency_to_note(freq: float) -> NotePitch:
    """Convert a frequency to its nearest equal-tempered note (Scientific Pitch Notation).

    Args:
        freq: Frequency in Hz

    Returns:
        NotePitch with pitch class, octave and cents deviation in [-50, 50].
        Frequencies outside 20-4000 Hz (or non-finite) map to UNDETECTED.

    Note:
        - Middle C is C4 (261.63 Hz)
        - Octave numbers change between B and C (e.g., B3 -> C4)
    """
    if not math.isfinite(freq) or not is_in_range(freq):
        return UNDETECTED

    note_number = 12 * np.log2(freq / A4_FREQUENCY) + A4_MIDI
    # Half-up rounding so x.5 resolves the same way on every platform
    rounded = int(math.floor(note_number + 0.5))
    cents = int(math.floor((note_number - rounded) * 100 + 0.5))

    octave = (rounded // 12) - 1
    name = PITCH_CLASSES[rounded % 12]
    return NotePitch(name=name, octave=octave, cents=cents)


def pitch_class_index(pitch_class: str) -> int:
    """Index of a sharp pitch class name in PITCH_CLASSES."""
    try:
        return PITCH_CLASSES.index(pitch_class)
    except ValueError:
        raise ValueError(f"Unknown pitch class: {pitch_class!r}") from None


def note_to_midi(pitch_class: str, octave: int) -> int:
    return (octave + 1) * 12 + pitch_class_index(pitch_class)


def note_to_frequency(pitch_class: str, octave: int) -> float:
    """Equal-tempered frequency of a pitch class in a given octave."""
    midi = note_to_midi(pitch_class, octave)
    return float(A4_FREQUENCY * 2.0 ** ((midi - A4_MIDI) / 12.0))


def cents_between(freq: float, reference: float) -> float:
    """Signed distance in cents from reference to freq."""
    if freq <= 0 or reference <= 0:
        raise ValueError("Frequencies must be positive to compare in cents")
    return float(1200.0 * np.log2(freq / reference))


def get_note_name(freq: float) -> str:
    """Convert frequency to a note name such as 'A4', or '-' if out of range."""
    return str(frequency_to_note(freq))
