"""Defines the core interfaces for the Crescendo application."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..note_types import DetectionMethod, PitchEstimate

if TYPE_CHECKING:
    from ..audio.frame import AudioFrame


class ISignalSource(ABC):
    """Interface for audio sources that serve fixed-size frames on demand."""

    @abstractmethod
    def initialize(self) -> None:
        """Acquire the input. Raises AcquisitionError on failure."""
        pass

    @abstractmethod
    def get_frame(self) -> AudioFrame:
        """Return the most recent window of samples and its spectrum."""
        pass

    @abstractmethod
    def suspend(self) -> None:
        """Stop sampling without releasing the device."""
        pass

    @abstractmethod
    def resume(self) -> None:
        """Restart sampling after suspend()."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the device."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the stream in Hz."""
        pass


class IPitchDetectionMethod(ABC):
    """Interface for one independent pitch detection algorithm."""

    method: DetectionMethod = DetectionMethod.NONE

    @abstractmethod
    def detect(self, frame: AudioFrame) -> PitchEstimate:
        """Return a candidate estimate; abstain with confidence 0."""
        pass
