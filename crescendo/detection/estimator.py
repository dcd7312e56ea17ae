"""Fuses several pitch detection methods into one estimate per frame."""

from __future__ import annotations
from typing import Iterable, List, Optional, Sequence

from ..logger import get_logger
from ..note_types import PitchEstimate
from ..core.config import DetectionConfig
from ..core.interfaces import IPitchDetectionMethod
from ..audio.frame import AudioFrame
from .methods import create_methods

logger = get_logger(__name__)


def fuse_candidates(
    candidates: Iterable[PitchEstimate],
    min_frequency: float,
    max_frequency: float,
    volume: float = 0.0,
    timestamp: float = 0.0,
) -> PitchEstimate:
    """Pick the highest-confidence candidate whose frequency is in range.

    Ties go to the earliest candidate. With no qualifying candidate the
    result is a zero-confidence estimate with method NONE.
    """
    best: Optional[PitchEstimate] = None
    for candidate in candidates:
        if not min_frequency <= candidate.frequency <= max_frequency:
            continue
        if candidate.confidence <= 0:
            continue
        if best is None or candidate.confidence > best.confidence:
            best = candidate

    if best is None:
        return PitchEstimate.silent(volume=volume, timestamp=timestamp)
    return PitchEstimate(best.frequency, best.confidence, volume, best.method, timestamp)


class PitchEstimator:
    """Runs every configured detection method on a frame and fuses the results."""

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        methods: Optional[Sequence[IPitchDetectionMethod]] = None,
    ) -> None:
        self._config = config or DetectionConfig()
        self._methods: List[IPitchDetectionMethod] = (
            list(methods) if methods is not None else create_methods(self._config)
        )
        logger.info(
            "Pitch estimator initialized with methods: "
            + ", ".join(m.method.value for m in self._methods)
        )

    @property
    def methods(self) -> List[IPitchDetectionMethod]:
        return list(self._methods)

    def candidates(self, frame: AudioFrame) -> List[PitchEstimate]:
        """Run every method on the frame."""
        return [method.detect(frame) for method in self._methods]

    def estimate(self, frame: AudioFrame, timestamp: Optional[float] = None) -> PitchEstimate:
        """Return the fused estimate for one frame.

        Args:
            frame: The frame to analyse
            timestamp: Session-elapsed time to stamp on the result, defaults to frame.timestamp
        """
        when = frame.timestamp if timestamp is None else timestamp
        candidates = self.candidates(frame)
        fused = fuse_candidates(
            candidates,
            self._config.min_frequency,
            self._config.max_frequency,
            volume=frame.volume_rms,
            timestamp=when,
        )
        logger.debug(
            f"Fused {fused.method.value}: {fused.frequency:.1f}Hz conf={fused.confidence:.3f} "
            f"vol={fused.volume:.4f}"
        )
        return fused
