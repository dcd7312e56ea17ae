from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional

from ..logger import get_logger
from ..note_types import JudgmentSample

logger = get_logger(__name__)


def pitch_class_key(sample: JudgmentSample) -> str:
    return sample.pitch.name


def full_note_key(sample: JudgmentSample) -> str:
    return str(sample.pitch)


@dataclass(frozen=True)
class Vote:
    """The winning key of a weighted vote and its share of the total weight."""

    key: str
    fraction: float
    weight: float
    count: int


class SampleBuffer:
    """
    Sliding buffer of judgment samples for one target note.

    Samples older than the smoothing horizon are discarded. A vote weighs
    each sample by confidence times a recency weight that falls linearly
    from 1 (now) to 0 (horizon edge).
    """

    def __init__(
        self,
        horizon: float,
        key: Callable[[JudgmentSample], str] = pitch_class_key,
    ):
        if horizon <= 0:
            raise ValueError("horizon must be positive")
        self._horizon = horizon
        self._key = key
        self._samples: Deque[JudgmentSample] = deque()

    @property
    def horizon(self) -> float:
        return self._horizon

    @property
    def samples(self) -> List[JudgmentSample]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def add(self, sample: JudgmentSample) -> None:
        """Append a sample and drop any that fell out of the horizon."""
        self._samples.append(sample)
        self.prune(sample.timestamp)

    def prune(self, now: float) -> None:
        while self._samples and now - self._samples[0].timestamp > self._horizon:
            self._samples.popleft()

    def weights(self, now: float) -> Dict[str, float]:
        """Total weight per key, in first-registered order."""
        self.prune(now)
        totals: Dict[str, float] = {}
        for sample in self._samples:
            age = max(0.0, now - sample.timestamp)
            recency = max(0.0, 1.0 - age / self._horizon)
            key = self._key(sample)
            totals[key] = totals.get(key, 0.0) + sample.confidence * recency
        return totals

    def vote(self, now: float, agreement_threshold: float) -> Optional[Vote]:
        """
        Return the plurality key if its weight share exceeds the threshold.

        Ties go to the key registered first. Returns None (abstain) when the
        buffer carries no weight or no key is dominant enough.
        """
        totals = self.weights(now)
        total = sum(totals.values())
        if total <= 0:
            return None

        winner = None
        for key, weight in totals.items():
            if winner is None or weight > totals[winner]:
                winner = key

        fraction = totals[winner] / total
        logger.debug(
            f"Vote: {winner} {fraction:.2f} of {total:.3f} "
            f"({', '.join(f'{k}={w:.3f}' for k, w in totals.items())})"
        )
        if fraction <= agreement_threshold:
            return None
        count = sum(1 for s in self._samples if self._key(s) == winner)
        return Vote(winner, fraction, totals[winner], count)

    def matching(self, key: str) -> List[JudgmentSample]:
        return [s for s in self._samples if self._key(s) == key]

    def corroborating(self, key: str, cents_tolerance: float) -> int:
        """Number of buffered samples with the key and |cents| under the tolerance."""
        return sum(1 for s in self.matching(key) if abs(s.pitch.cents) < cents_tolerance)
