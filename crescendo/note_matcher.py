import re
from typing import Optional, Tuple

from .note_utils import PITCH_CLASSES

# Compile regex to extract note name and octave
# This pattern matches:
# - Note name (A-G, case insensitive)
# - Optional accidental (# or b)
# - Optional octave number, possibly negative
NOTE_PATTERN = re.compile(r"^([A-Ga-g][#b]?)(-?[0-9]*)$")

FLAT_TO_SHARP = {
    "Ab": "G#",
    "Bb": "A#",
    "Cb": "B",
    "Db": "C#",
    "Eb": "D#",
    "Fb": "E",
    "Gb": "F#",
}

# Spellings that cross a natural boundary
ENHARMONIC_MAP = {
    "B#": "C",
    "E#": "F",
}


class NoteMatcher:
    """
    Parses spelled notes into sharp pitch classes and octaves,
    including normalization and enharmonic equivalence.
    """

    @staticmethod
    def normalize_pitch_class(note: str) -> str:
        """Normalize a pitch class spelling to its sharp form (e.g. 'bb' -> 'A#').

        Raises:
            ValueError: If the spelling is not a pitch class
        """
        if not note:
            raise ValueError("Empty pitch class")
        spelled = note[0].upper() + note[1:]
        spelled = FLAT_TO_SHARP.get(spelled, spelled)
        spelled = ENHARMONIC_MAP.get(spelled, spelled)
        if spelled not in PITCH_CLASSES:
            raise ValueError(f"Unknown pitch class: {note!r}")
        return spelled

    @classmethod
    def parse(cls, note: str) -> Tuple[str, Optional[int]]:
        """Split a note such as 'Db4' into ('C#', 4); the octave may be absent.

        Raises:
            ValueError: If the note cannot be parsed
        """
        match = NOTE_PATTERN.match(str(note).strip())
        if not match:
            raise ValueError(f"Invalid note format: {note!r}")
        pitch_class = cls.normalize_pitch_class(match.group(1))
        octave = int(match.group(2)) if match.group(2) not in ("", "-") else None
        return pitch_class, octave
