"""Independent pitch detection algorithms.

Each method looks at one AudioFrame and either reports a candidate
frequency with a heuristic confidence, or abstains with confidence 0.
"""

from __future__ import annotations
from typing import ClassVar, Dict, List, Optional, Type

import librosa
import numpy as np

from ..logger import get_logger
from ..note_types import DetectionMethod, PitchEstimate
from ..core.config import DetectionConfig
from ..core.interfaces import IPitchDetectionMethod
from ..audio.frame import AudioFrame

logger = get_logger(__name__)


class _GatedMethod(IPitchDetectionMethod):
    """Shared silence gate: frames quieter than the floor abstain."""

    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        self._config = config or DetectionConfig()

    def detect(self, frame: AudioFrame) -> PitchEstimate:
        volume = frame.volume_rms
        if frame.size == 0 or volume < self._config.silence_floor:
            return self._abstain(frame, volume)
        return self._detect(frame, volume)

    def _detect(self, frame: AudioFrame, volume: float) -> PitchEstimate:
        raise NotImplementedError

    def _abstain(self, frame: AudioFrame, volume: float) -> PitchEstimate:
        return PitchEstimate(0.0, 0.0, volume, self.method, frame.timestamp)


class AutocorrelationMethod(_GatedMethod):
    """Time-domain self-similarity over lag offsets.

    Each lag scores 1 - mean|x[i] - x[i + lag]| over the first half of the
    frame. The first run of increasing scores above the good-enough
    threshold is followed to its peak; the scan stops once the score falls.
    """

    method: ClassVar[DetectionMethod] = DetectionMethod.AUTOCORRELATION

    def _detect(self, frame: AudioFrame, volume: float) -> PitchEstimate:
        x = frame.samples.astype(np.float64)
        max_samples = x.size // 2
        head = x[:max_samples]
        good_enough = self._config.good_enough_correlation

        scores: Dict[int, float] = {}
        best_offset = -1
        best_correlation = 0.0
        found_good = False
        last_correlation = 1.0

        for offset in range(1, max_samples):
            correlation = 1.0 - float(
                np.mean(np.abs(head - x[offset:offset + max_samples]))
            )
            scores[offset] = correlation

            if correlation > good_enough and correlation > last_correlation:
                found_good = True
                if correlation > best_correlation:
                    best_correlation = correlation
                    best_offset = offset
            elif found_good:
                break
            last_correlation = correlation

        if best_offset < 1:
            return self._abstain(frame, volume)

        lag = _parabolic_peak(scores, best_offset)
        frequency = frame.sample_rate / lag
        logger.debug(
            f"Autocorrelation: lag={lag:.2f} freq={frequency:.1f}Hz conf={best_correlation:.3f}"
        )
        return PitchEstimate(
            frequency, min(1.0, best_correlation), volume, self.method, frame.timestamp
        )


def _parabolic_peak(scores: Dict[int, float], offset: int) -> float:
    """Refine an integer peak position with its two neighbours."""
    left = scores.get(offset - 1)
    right = scores.get(offset + 1)
    if left is None or right is None:
        return float(offset)
    centre = scores[offset]
    denominator = left - 2.0 * centre + right
    if denominator >= 0:
        return float(offset)
    shift = 0.5 * (left - right) / denominator
    return offset + max(-0.5, min(0.5, shift))


class SpectralPeakMethod(_GatedMethod):
    """Loudest spectrum bin below Nyquist, confidence from its level in dB."""

    method: ClassVar[DetectionMethod] = DetectionMethod.SPECTRAL_PEAK

    def _detect(self, frame: AudioFrame, volume: float) -> PitchEstimate:
        spectrum = frame.spectrum
        if spectrum.size < 3:
            return self._abstain(frame, volume)

        # Skip DC and the Nyquist bin
        index = int(np.argmax(spectrum[1:-1])) + 1
        magnitude = float(spectrum[index])
        if magnitude <= 0:
            return self._abstain(frame, volume)

        db = 20.0 * np.log10(magnitude)
        confidence = float(np.clip((db + 100.0) / 100.0, 0.0, 1.0))
        frequency = frame.bin_frequency(index)
        logger.debug(
            f"Spectral peak: bin={index} freq={frequency:.1f}Hz db={db:.1f} conf={confidence:.3f}"
        )
        return PitchEstimate(frequency, confidence, volume, self.method, frame.timestamp)


class ChromaMethod(_GatedMethod):
    """Pitch-class histogram plus spectral centroid.

    The dominant chroma bin picks the pitch class and the spectral centroid
    picks the octave. Confidence is the dominant bin's share of chroma energy
    scaled by loudness and capped, so this method only wins when the others
    abstain or disagree weakly.
    """

    method: ClassVar[DetectionMethod] = DetectionMethod.CHROMA

    def _detect(self, frame: AudioFrame, volume: float) -> PitchEstimate:
        magnitude = frame.spectrum[:, np.newaxis]
        chroma = librosa.feature.chroma_stft(
            S=magnitude ** 2, sr=frame.sample_rate, n_fft=frame.n_fft, tuning=0.0, norm=None
        )[:, 0]
        total = float(chroma.sum())
        if total <= 0:
            return self._abstain(frame, volume)

        centroid = float(
            librosa.feature.spectral_centroid(
                S=magnitude, sr=frame.sample_rate, n_fft=frame.n_fft
            )[0, 0]
        )
        if centroid <= 0:
            return self._abstain(frame, volume)

        dominant = int(np.argmax(chroma))
        dominance = float(chroma[dominant]) / total
        loudness = min(volume * 10.0, 1.0)
        confidence = dominance * loudness * self._config.chroma_confidence_ceiling
        frequency = _nearest_class_frequency(centroid, dominant)
        logger.debug(
            f"Chroma: class={dominant} centroid={centroid:.1f}Hz freq={frequency:.1f}Hz "
            f"conf={confidence:.3f}"
        )
        return PitchEstimate(frequency, confidence, volume, self.method, frame.timestamp)


def _nearest_class_frequency(centroid: float, pitch_class: int) -> float:
    """Frequency of the given pitch class in the octave closest to centroid."""
    midi = 12.0 * np.log2(centroid / 440.0) + 69.0
    nearest = pitch_class + 12 * round((midi - pitch_class) / 12.0)
    return float(440.0 * 2.0 ** ((nearest - 69) / 12.0))


METHOD_TYPES: Dict[str, Type[_GatedMethod]] = {
    "autocorrelation": AutocorrelationMethod,
    "spectral_peak": SpectralPeakMethod,
    "chroma": ChromaMethod,
}


def create_methods(config: Optional[DetectionConfig] = None) -> List[IPitchDetectionMethod]:
    """Instantiate the methods named in the detection config, in order.

    Raises:
        ValueError: If a method name is not registered
    """
    config = config or DetectionConfig()
    methods = []
    for name in config.methods:
        if name not in METHOD_TYPES:
            raise ValueError(f"Unknown pitch detection method: {name}")
        methods.append(METHOD_TYPES[name](config))
    return methods
