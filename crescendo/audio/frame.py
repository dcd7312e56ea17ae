"""Fixed-size analysis frames."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


def rms(samples: np.ndarray) -> float:
    """Root-mean-square level of a block of samples."""
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def compute_spectrum(samples: np.ndarray) -> np.ndarray:
    """Magnitude spectrum of a Hann-windowed frame.

    Scaled so a full-scale sine centred on a bin reads 1.0 (0 dB).
    """
    if samples.size == 0:
        return np.zeros(1)
    window = np.hanning(samples.size)
    norm = window.sum() / 2.0
    return np.abs(np.fft.rfft(samples * window)) / (norm if norm > 0 else 1.0)


@dataclass(frozen=True)
class AudioFrame:
    """A window of recent mono samples in [-1, 1] plus its magnitude spectrum."""

    samples: np.ndarray
    sample_rate: int
    timestamp: float = 0.0
    spectrum: np.ndarray = field(default=None, repr=False)

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float32)
        if samples.ndim > 1:
            # Downmix anything multichannel to mono
            samples = samples.mean(axis=1).astype(np.float32)
        object.__setattr__(self, "samples", samples)
        if self.spectrum is None:
            object.__setattr__(self, "spectrum", compute_spectrum(samples))

    @property
    def size(self) -> int:
        return int(self.samples.size)

    @property
    def n_fft(self) -> int:
        return self.size

    @property
    def volume_rms(self) -> float:
        return rms(self.samples)

    @property
    def volume_level(self) -> float:
        """Relative volume on a 0-100 scale."""
        return min(100.0, self.volume_rms * 1000.0)

    def bin_frequency(self, index: int) -> float:
        """Centre frequency of a spectrum bin in Hz."""
        return index * self.sample_rate / float(self.n_fft)
