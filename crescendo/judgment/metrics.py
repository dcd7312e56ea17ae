"""
Per-note performance metrics computed from the samples a note collected.

All times are session-elapsed seconds. Volume figures are frame RMS values,
so only their ratios (stability) are comparable across inputs.
"""

from collections import Counter
from typing import Optional, Sequence, Tuple

import numpy as np

from ..note_types import (
    JudgmentSample,
    NoteOutcome,
    PitchSummary,
    TimingSummary,
    VolumeSummary,
)


def _rate(value: float, thresholds: Sequence[float], ascending: bool = True) -> str:
    """Map a value onto excellent/good/fair/poor given three cut points."""
    ratings = ("excellent", "good", "fair")
    for rating, limit in zip(ratings, thresholds):
        if (value < limit) if ascending else (value > limit):
            return rating
    return "poor"


def timing_consistency(samples: Sequence[JudgmentSample]) -> float:
    """0-100, how evenly spaced the samples are. Needs at least three."""
    if len(samples) < 3:
        return 0.0
    intervals = np.diff([s.timestamp for s in samples])
    mean = float(np.mean(intervals))
    if mean <= 0:
        return 0.0
    return max(0.0, 100.0 - float(np.std(intervals)) / mean * 100.0)


def summarize_timing(
    target_samples: Sequence[JudgmentSample], response_time: Optional[float] = None
) -> TimingSummary:
    if not target_samples:
        return TimingSummary(response_time=response_time)

    hold = target_samples[-1].timestamp - target_samples[0].timestamp
    return TimingSummary(
        response_time=response_time,
        hold_duration=hold,
        sustain_quality=_rate(hold, (1.0, 0.5, 0.2), ascending=False),
        timing_consistency=timing_consistency(target_samples),
    )


def summarize_volume(samples: Sequence[JudgmentSample]) -> VolumeSummary:
    volumes = np.array([s.volume for s in samples if s.volume > 0], dtype=float)
    if volumes.size == 0:
        return VolumeSummary()

    average = float(np.mean(volumes))
    stability = float(np.std(volumes)) / average if average > 0 else 0.0
    return VolumeSummary(
        average=average,
        maximum=float(np.max(volumes)),
        minimum=float(np.min(volumes)),
        stability=stability,
        consistency=_rate(stability, (0.2, 0.4, 0.6)),
    )


def summarize_pitch(
    target_samples: Sequence[JudgmentSample], expected_frequency: float
) -> PitchSummary:
    if not target_samples:
        return PitchSummary()

    frequencies = np.array([s.frequency for s in target_samples], dtype=float)
    mean = float(np.mean(frequencies))
    stability = float(np.std(frequencies))
    accuracy = 0.0
    if expected_frequency > 0:
        accuracy = max(0.0, 100.0 - abs(mean - expected_frequency) / expected_frequency * 100.0)
    return PitchSummary(
        stability=stability,
        accuracy=accuracy,
        consistency=_rate(stability, (5.0, 15.0, 30.0)),
    )


def classify_error(
    outcome: NoteOutcome, wrong_samples: Sequence[JudgmentSample]
) -> Optional[str]:
    if outcome is NoteOutcome.MISSED:
        return "no_input"
    if outcome is NoteOutcome.WRONG:
        return "wrong_note" if wrong_samples else "poor_detection"
    return None


def most_common_note(samples: Sequence[JudgmentSample]) -> Optional[str]:
    """Most frequent note name among samples; ties go to the first seen."""
    counts = Counter(str(s.pitch) for s in samples if s.pitch.detected)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def performance_quality(
    timing: TimingSummary, volume: VolumeSummary, pitch: PitchSummary
) -> Tuple[int, str]:
    """
    Weighted quality score for one note.

    Timing contributes 30, volume consistency 20 and pitch accuracy 50.
    Components with no data are left out of the denominator.

    Returns:
        (score 0-100, rating)
    """
    score = 0.0
    max_score = 0.0

    if timing.response_time is not None:
        max_score += 30
        if timing.response_time < 0.5:
            score += 30
        elif timing.response_time < 1.0:
            score += 20
        elif timing.response_time < 2.0:
            score += 10

    if volume.consistency != "none":
        max_score += 20
        score += {"excellent": 20, "good": 15, "fair": 10, "poor": 5}[volume.consistency]

    if pitch.accuracy > 0:
        max_score += 50
        score += pitch.accuracy / 100.0 * 50

    final = score / max_score * 100.0 if max_score > 0 else 0.0
    if final >= 90:
        rating = "excellent"
    elif final >= 75:
        rating = "good"
    elif final >= 60:
        rating = "fair"
    else:
        rating = "poor"
    return int(round(final)), rating
