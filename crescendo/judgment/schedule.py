"""
Building and validating target-note schedules.

A schedule is a list of TargetNote objects with judgment windows in
session-elapsed seconds. It can be built from note entries with beat
durations and a tempo, loaded from a JSON file, or generated at random
for a difficulty level.
"""

import json
import math
import random
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..core.errors import ScheduleError
from ..logger import get_logger
from ..note_matcher import NoteMatcher
from ..note_types import NoteState, TargetNote
from ..note_utils import PITCH_CLASSES, cents_between, is_in_range, note_to_frequency

logger = get_logger(__name__)

DURATION_BEATS = {
    "quarter": 1.0,
    "half": 2.0,
    "whole": 4.0,
}

BEATS_PER_BAR = 4

DEFAULT_TEMPO = 60.0
DEFAULT_LEAD_IN = 2.0

NATURALS = ["C", "D", "E", "F", "G", "A", "B"]

DIFFICULTIES: Dict[str, Dict[str, Any]] = {
    "easy": {"min_octave": 4, "max_octave": 4, "notes": NATURALS},
    "medium": {"min_octave": 3, "max_octave": 6, "notes": PITCH_CLASSES},
    "hard": {"min_octave": 2, "max_octave": 7, "notes": PITCH_CLASSES},
}

# How far a stated expected frequency may stray from the named pitch
_FREQUENCY_TOLERANCE_CENTS = 50.0


def _check_note(note: TargetNote, position: int) -> None:
    where = f"note {position} ({note.pitch_class}{note.octave})"

    if note.pitch_class not in PITCH_CLASSES:
        raise ScheduleError(f"{where}: unknown pitch class {note.pitch_class!r}")
    if isinstance(note.octave, bool) or not isinstance(note.octave, int):
        raise ScheduleError(f"{where}: octave must be an integer, got {note.octave!r}")

    for name in ("window_start", "window_end", "expected_frequency"):
        value = getattr(note, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ScheduleError(f"{where}: {name} must be a finite number, got {value!r}")

    if note.window_start < 0:
        raise ScheduleError(f"{where}: window starts before the session ({note.window_start})")
    if note.window_end <= note.window_start:
        raise ScheduleError(
            f"{where}: window end {note.window_end} is not after start {note.window_start}"
        )

    if not is_in_range(note.expected_frequency):
        raise ScheduleError(
            f"{where}: expected frequency {note.expected_frequency} Hz is outside the supported range"
        )
    nominal = note_to_frequency(note.pitch_class, note.octave)
    if abs(cents_between(note.expected_frequency, nominal)) > _FREQUENCY_TOLERANCE_CENTS:
        raise ScheduleError(
            f"{where}: expected frequency {note.expected_frequency} Hz does not match "
            f"{nominal:.2f} Hz"
        )

    if note.state is not NoteState.SCHEDULED:
        raise ScheduleError(f"{where}: already {note.state.value}")


def validate_schedule(notes: Iterable[TargetNote]) -> List[TargetNote]:
    """
    Check every note of a schedule and return them ordered by window start.

    Raises:
        ScheduleError: On the first malformed note, on duplicate indices,
            or if the schedule is empty
    """
    checked = list(notes)
    if not checked:
        raise ScheduleError("Schedule contains no notes")

    seen = set()
    for position, note in enumerate(checked):
        if not isinstance(note, TargetNote):
            raise ScheduleError(f"note {position}: expected a TargetNote, got {type(note).__name__}")
        _check_note(note, position)
        if note.index in seen:
            raise ScheduleError(f"note {position}: duplicate index {note.index}")
        seen.add(note.index)

    return sorted(checked, key=lambda n: (n.window_start, n.index))


def make_target_note(
    note: str,
    octave: Optional[int],
    window_start: float,
    window_end: float,
    index: int = 0,
    beats: float = 1.0,
) -> TargetNote:
    """Create a TargetNote from a spelled note such as 'Bb' or 'C#4'."""
    try:
        pitch_class, parsed_octave = NoteMatcher.parse(note)
    except ValueError as e:
        raise ScheduleError(f"note {index}: {e}") from None

    if octave is None:
        octave = parsed_octave
    if octave is None:
        raise ScheduleError(f"note {index}: {note!r} has no octave")
    if isinstance(octave, bool) or (isinstance(octave, float) and not octave.is_integer()):
        raise ScheduleError(f"note {index}: invalid octave {octave!r}")
    try:
        octave = int(octave)
    except (TypeError, ValueError):
        raise ScheduleError(f"note {index}: invalid octave {octave!r}") from None

    return TargetNote(
        pitch_class=pitch_class,
        octave=octave,
        expected_frequency=note_to_frequency(pitch_class, octave),
        window_start=window_start,
        window_end=window_end,
        index=index,
        beats=beats,
    )


def _to_number(value: Any, what: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ScheduleError(f"Invalid {what} {value!r}") from None
    if not math.isfinite(number):
        raise ScheduleError(f"{what.capitalize()} must be finite, got {value!r}")
    return number


def _entry_beats(entry: Mapping[str, Any], index: int) -> float:
    if "beats" in entry:
        beats = entry["beats"]
    else:
        duration = entry.get("duration", "quarter")
        if duration not in DURATION_BEATS:
            raise ScheduleError(f"note {index}: unknown duration {duration!r}")
        beats = DURATION_BEATS[duration]
    try:
        beats = float(beats)
    except (TypeError, ValueError):
        raise ScheduleError(f"note {index}: invalid beats {beats!r}") from None
    if not math.isfinite(beats) or beats <= 0:
        raise ScheduleError(f"note {index}: beats must be positive, got {beats!r}")
    return beats


def build_schedule(
    entries: Sequence[Mapping[str, Any]],
    tempo: float = DEFAULT_TEMPO,
    lead_in: float = DEFAULT_LEAD_IN,
    tolerance: float = 0.5,
) -> List[TargetNote]:
    """
    Lay note entries out on a timeline and open a window around each onset.

    Each entry is a mapping with a ``note`` (or ``name``) such as ``"C"`` or
    ``"C4"``, an optional ``octave``, and a ``duration`` ("quarter", "half",
    "whole") or numeric ``beats``. An entry may pin its onset with ``time``
    in seconds; later entries continue from there.

    Args:
        entries: Note entries in playing order
        tempo: Beats per minute
        lead_in: Seconds before the first onset
        tolerance: Half-width of each judgment window in seconds

    Returns:
        Validated schedule
    """
    tempo = _to_number(tempo, "tempo")
    lead_in = _to_number(lead_in, "lead-in")
    if tempo <= 0:
        raise ScheduleError(f"Tempo must be positive, got {tempo!r}")
    if tolerance <= 0:
        raise ScheduleError(f"Judgment tolerance must be positive, got {tolerance!r}")

    seconds_per_beat = 60.0 / tempo
    onset = lead_in
    notes = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ScheduleError(f"note {index}: expected an object, got {entry!r}")
        spelled = entry.get("note", entry.get("name"))
        if not spelled:
            raise ScheduleError(f"note {index}: missing note name")

        beats = _entry_beats(entry, index)
        if "time" in entry:
            onset = _to_number(entry["time"], f"time for note {index}")

        notes.append(
            make_target_note(
                spelled,
                entry.get("octave"),
                window_start=max(0.0, onset - tolerance),
                window_end=onset + tolerance,
                index=index,
                beats=beats,
            )
        )
        onset += beats * seconds_per_beat

    schedule = validate_schedule(notes)
    logger.info(f"Built schedule of {len(schedule)} notes at {tempo} BPM")
    return schedule


def flatten_bars(bars: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Concatenate the notes of bar objects ``{"bar": 1, "notes": [...]}``."""
    entries = []
    for position, bar in enumerate(bars):
        if not isinstance(bar, Mapping) or not isinstance(bar.get("notes"), list):
            raise ScheduleError(f"bar {position}: expected an object with a notes list")
        entries.extend(bar["notes"])
    return entries


def parse_schedule(
    data: Union[Mapping[str, Any], Sequence[Any]],
    tempo: Optional[float] = None,
    lead_in: Optional[float] = None,
    tolerance: float = 0.5,
) -> List[TargetNote]:
    """
    Build a schedule from decoded JSON.

    Accepts ``{"tempo": 90, "lead_in": 2, "notes": [...]}``, the same with
    ``"bars"`` instead of ``"notes"``, a bare list of bars, or a bare list
    of note entries. Explicit tempo/lead_in arguments win over the file.
    """
    if isinstance(data, Mapping):
        tempo = tempo if tempo is not None else data.get("tempo", DEFAULT_TEMPO)
        lead_in = lead_in if lead_in is not None else data.get("lead_in", DEFAULT_LEAD_IN)
        if "bars" in data:
            entries = flatten_bars(data["bars"])
        elif "notes" in data:
            entries = data["notes"]
        else:
            raise ScheduleError("Schedule object needs a 'notes' or 'bars' list")
    elif isinstance(data, list):
        if data and isinstance(data[0], Mapping) and "notes" in data[0]:
            entries = flatten_bars(data)
        else:
            entries = data
    else:
        raise ScheduleError(f"Unsupported schedule data: {type(data).__name__}")

    if not isinstance(entries, list):
        raise ScheduleError("Schedule notes must be a list")

    return build_schedule(
        entries,
        tempo=DEFAULT_TEMPO if tempo is None else tempo,
        lead_in=DEFAULT_LEAD_IN if lead_in is None else lead_in,
        tolerance=tolerance,
    )


def load_schedule(path: Union[str, Path], **kwargs) -> List[TargetNote]:
    """Load a schedule from a JSON file. See parse_schedule for the formats."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except OSError as e:
        raise ScheduleError(f"Cannot read schedule {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ScheduleError(f"Schedule {path} is not valid JSON: {e}") from e

    logger.info(f"Loading schedule from {path}")
    return parse_schedule(data, **kwargs)


def random_bars(
    bar_count: int,
    difficulty: str = "easy",
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    """Random 4/4 bars of quarter, half and whole notes for a difficulty level."""
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    rng = rng or random.Random()
    level = DIFFICULTIES[difficulty]

    bars = []
    for number in range(1, bar_count + 1):
        notes = []
        remaining = BEATS_PER_BAR
        while remaining > 0:
            fitting = [name for name, beats in DURATION_BEATS.items() if beats <= remaining]
            duration = rng.choice(fitting)
            notes.append(
                {
                    "note": rng.choice(level["notes"]),
                    "octave": rng.randint(level["min_octave"], level["max_octave"]),
                    "duration": duration,
                }
            )
            remaining -= DURATION_BEATS[duration]
        bars.append({"bar": number, "notes": notes})
    return bars
