"""Type definitions for the Crescendo project."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class DetectionMethod(Enum):
    """Which detector produced a pitch estimate."""

    AUTOCORRELATION = "Autocorrelation"
    SPECTRAL_PEAK = "SpectralPeak"
    CHROMA = "ChromaBased"
    NONE = "None"


@dataclass(frozen=True)
class PitchEstimate:
    """A single pitch candidate, or the fused result for one frame."""

    frequency: float  # Hz, 0.0 when nothing was detected
    confidence: float  # Heuristic score in [0, 1], not a probability
    volume: float  # RMS of the frame
    method: DetectionMethod
    timestamp: float  # Session-elapsed seconds

    @classmethod
    def silent(cls, volume: float = 0.0, timestamp: float = 0.0) -> "PitchEstimate":
        return cls(0.0, 0.0, volume, DetectionMethod.NONE, timestamp)

    @property
    def is_abstention(self) -> bool:
        return self.confidence <= 0.0 or self.frequency <= 0.0


@dataclass(frozen=True)
class NotePitch:
    """A musical pitch: pitch class, octave and cents deviation from equal temperament."""

    name: str  # One of the 12 sharp pitch classes, or "-" when undetected
    octave: Optional[int]
    cents: int  # In [-50, 50]

    @property
    def detected(self) -> bool:
        return self.octave is not None

    def __str__(self):
        if not self.detected:
            return "-"
        return f"{self.name}{self.octave}"


# Sentinel for frequencies outside the supported range
UNDETECTED = NotePitch(name="-", octave=None, cents=0)


class NoteState(Enum):
    """Lifecycle of a TargetNote. CORRECT, WRONG and MISSED are terminal."""

    SCHEDULED = "scheduled"
    OPEN = "open"
    CORRECT = "correct"
    WRONG = "wrong"
    MISSED = "missed"

    @property
    def is_terminal(self) -> bool:
        return self in (NoteState.CORRECT, NoteState.WRONG, NoteState.MISSED)


class NoteOutcome(Enum):
    """Final verdict for a judged note."""

    CORRECT = "correct"
    WRONG = "wrong"
    MISSED = "missed"


@dataclass
class TargetNote:
    """A scheduled note the performer must play.

    Window bounds are session-elapsed seconds. The state is advanced only by
    the JudgmentEngine.
    """

    pitch_class: str
    octave: int
    expected_frequency: float
    window_start: float
    window_end: float
    index: int = 0
    beats: float = 1.0
    state: NoteState = NoteState.SCHEDULED

    @property
    def window_center(self) -> float:
        return (self.window_start + self.window_end) / 2.0

    @property
    def window_length(self) -> float:
        return self.window_end - self.window_start

    @property
    def name(self) -> str:
        return f"{self.pitch_class}{self.octave}"


@dataclass(frozen=True)
class JudgmentSample:
    """A fused estimate attributed to one target note's open window."""

    timestamp: float
    frequency: float
    confidence: float
    volume: float
    pitch: NotePitch
    method: DetectionMethod = DetectionMethod.NONE


@dataclass(frozen=True)
class TimingSummary:
    response_time: Optional[float] = None
    hold_duration: float = 0.0
    sustain_quality: str = "none"
    timing_consistency: float = 0.0


@dataclass(frozen=True)
class VolumeSummary:
    average: float = 0.0
    maximum: float = 0.0
    minimum: float = 0.0
    stability: float = 0.0  # Coefficient of variation
    consistency: str = "none"


@dataclass(frozen=True)
class PitchSummary:
    stability: float = 0.0  # Std-dev in Hz of target-class samples
    accuracy: float = 0.0  # Percent closeness of the mean to the target
    consistency: str = "none"


@dataclass(frozen=True)
class NoteOutcomeRecord:
    """Immutable result of judging one TargetNote."""

    note_index: int
    pitch_class: str
    octave: int
    expected_frequency: float
    outcome: NoteOutcome
    decided_at: float
    window_start: float
    window_end: float
    detected: Optional[NotePitch] = None
    detected_frequency: Optional[float] = None
    cents_deviation: Optional[float] = None  # Relative to expected_frequency
    response_time: Optional[float] = None
    confidence: Optional[float] = None
    points: int = 0
    streak_at_time: int = 0
    timing: TimingSummary = field(default_factory=TimingSummary)
    volume: VolumeSummary = field(default_factory=VolumeSummary)
    pitch: PitchSummary = field(default_factory=PitchSummary)
    error_type: Optional[str] = None
    most_common_wrong: Optional[str] = None  # Note name heard most often instead of the target
    quality_score: int = 0
    quality_rating: str = "poor"
    samples: Tuple[JudgmentSample, ...] = ()

    @property
    def target_name(self) -> str:
        return f"{self.pitch_class}{self.octave}"

    def to_dict(self) -> dict:
        """Plain-data view suitable for JSON serialization."""
        return {
            "note_index": self.note_index,
            "target": self.target_name,
            "expected_frequency": self.expected_frequency,
            "outcome": self.outcome.value,
            "decided_at": self.decided_at,
            "window_start": self.window_start,
            "window_end": self.window_end,
            "detected": str(self.detected) if self.detected else None,
            "detected_frequency": self.detected_frequency,
            "cents_deviation": self.cents_deviation,
            "response_time": self.response_time,
            "confidence": self.confidence,
            "points": self.points,
            "streak_at_time": self.streak_at_time,
            "timing": {
                "response_time": self.timing.response_time,
                "hold_duration": self.timing.hold_duration,
                "sustain_quality": self.timing.sustain_quality,
                "timing_consistency": self.timing.timing_consistency,
            },
            "volume": {
                "average": self.volume.average,
                "maximum": self.volume.maximum,
                "minimum": self.volume.minimum,
                "stability": self.volume.stability,
                "consistency": self.volume.consistency,
            },
            "pitch": {
                "stability": self.pitch.stability,
                "accuracy": self.pitch.accuracy,
                "consistency": self.pitch.consistency,
            },
            "error_type": self.error_type,
            "most_common_wrong": self.most_common_wrong,
            "quality_score": self.quality_score,
            "quality_rating": self.quality_rating,
            "sample_count": len(self.samples),
        }
