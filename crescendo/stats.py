"""Session statistics: an append-only outcome log and aggregates folded over it."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from functools import reduce
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .core.config import SessionConfig
from .logger import get_logger
from .note_types import NoteOutcome, NoteOutcomeRecord

# Get logger for this module
logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionAggregates:
    """Running totals over an outcome log. add() returns a new value."""

    total: int = 0
    correct: int = 0
    wrong: int = 0
    missed: int = 0
    points: int = 0
    cents_sum: float = 0.0
    cents_count: int = 0
    response_time_sum: float = 0.0
    response_time_count: int = 0
    streak: int = 0
    max_streak: int = 0

    def add(self, record: NoteOutcomeRecord) -> "SessionAggregates":
        if record.outcome is NoteOutcome.CORRECT:
            streak = self.streak + 1
            return replace(
                self,
                total=self.total + 1,
                correct=self.correct + 1,
                points=self.points + record.points,
                cents_sum=self.cents_sum + abs(record.cents_deviation or 0.0),
                cents_count=self.cents_count + (record.cents_deviation is not None),
                response_time_sum=self.response_time_sum + (record.response_time or 0.0),
                response_time_count=self.response_time_count + (record.response_time is not None),
                streak=streak,
                max_streak=max(self.max_streak, streak),
            )
        return replace(
            self,
            total=self.total + 1,
            wrong=self.wrong + (record.outcome is NoteOutcome.WRONG),
            missed=self.missed + (record.outcome is NoteOutcome.MISSED),
            points=self.points + record.points,
            streak=0,
        )

    def accuracy(self, abandoned: int = 0) -> float:
        """Percent of notes judged Correct; abandoned notes join the denominator."""
        denominator = self.total + abandoned
        if denominator == 0:
            return 0.0
        return self.correct / denominator * 100.0

    @property
    def average_cents_deviation(self) -> Optional[float]:
        """Mean |cents| of correct notes, None before the first one."""
        if self.cents_count == 0:
            return None
        return self.cents_sum / self.cents_count

    @property
    def average_response_time(self) -> Optional[float]:
        if self.response_time_count == 0:
            return None
        return self.response_time_sum / self.response_time_count


def fold_outcomes(records: Iterable[NoteOutcomeRecord]) -> SessionAggregates:
    """Recompute aggregates from scratch over a full log."""
    return reduce(lambda aggregates, record: aggregates.add(record), records, SessionAggregates())


@dataclass(frozen=True)
class SessionReport:
    """Final, plain-data summary of a session."""

    session_id: str
    difficulty: str
    started_at: str
    ended_at: str
    total_notes: int
    correct_notes: int
    wrong_notes: int
    missed_notes: int
    abandoned_notes: int
    accuracy: float
    average_cents_deviation: Optional[float]
    average_response_time: Optional[float]
    max_streak: int
    total_points: int
    outcomes: Tuple[NoteOutcomeRecord, ...] = ()
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "difficulty": self.difficulty,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "total_notes": self.total_notes,
            "correct_notes": self.correct_notes,
            "wrong_notes": self.wrong_notes,
            "missed_notes": self.missed_notes,
            "abandoned_notes": self.abandoned_notes,
            "accuracy": self.accuracy,
            "average_cents_deviation": self.average_cents_deviation,
            "average_response_time": self.average_response_time,
            "max_streak": self.max_streak,
            "total_points": self.total_points,
            "outcomes": [record.to_dict() for record in self.outcomes],
            "summary": dict(self.summary),
        }


class SessionStatistics:
    """
    Collects NoteOutcomeRecords for one session.

    The log is append-only. Aggregates are updated incrementally as records
    arrive and are recomputed from the log at the end; both must agree.
    Nothing is persisted here; callers decide what to do with the report.
    """

    def __init__(self):
        self._config = SessionConfig()
        self._session_id: Optional[str] = None
        self._started_at: Optional[datetime] = None
        self._log: List[NoteOutcomeRecord] = []
        self._recorded = set()
        self._aggregates = SessionAggregates()
        self._tracking = False

    @property
    def is_tracking(self) -> bool:
        return self._tracking

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def log(self) -> Tuple[NoteOutcomeRecord, ...]:
        return tuple(self._log)

    @property
    def aggregates(self) -> SessionAggregates:
        return self._aggregates

    def start_session(self, config: Optional[SessionConfig] = None) -> str:
        if self._tracking:
            logger.warning(f"Session {self._session_id} was never ended; starting a new one")

        self._config = config or SessionConfig()
        self._started_at = datetime.now()
        self._session_id = (
            f"session_{self._started_at.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
        )
        self._log = []
        self._recorded = set()
        self._aggregates = SessionAggregates()
        self._tracking = True
        logger.info(f"Started session {self._session_id} ({self._config.difficulty})")
        return self._session_id

    def record_outcome(self, record: NoteOutcomeRecord) -> None:
        """Append one outcome.

        Raises:
            ValueError: If the same note was already recorded
        """
        if not self._tracking:
            logger.warning(f"Ignoring outcome for note {record.note_index}: no active session")
            return
        if record.note_index in self._recorded:
            raise ValueError(f"Note {record.note_index} already has an outcome")

        self._log.append(record)
        self._recorded.add(record.note_index)
        self._aggregates = self._aggregates.add(record)
        logger.debug(
            f"Recorded {record.target_name} {record.outcome.value}, "
            f"accuracy {self._aggregates.accuracy():.1f}%"
        )

    def current_stats(self) -> Dict[str, Any]:
        """Snapshot of the running aggregates."""
        aggregates = self._aggregates
        return {
            "session_id": self._session_id,
            "total_notes": aggregates.total,
            "correct_notes": aggregates.correct,
            "wrong_notes": aggregates.wrong,
            "missed_notes": aggregates.missed,
            "accuracy": aggregates.accuracy(),
            "streak": aggregates.streak,
            "max_streak": aggregates.max_streak,
            "points": aggregates.points,
            "average_cents_deviation": aggregates.average_cents_deviation,
            "average_response_time": aggregates.average_response_time,
        }

    def end_session(self, summary: Optional[Mapping[str, Any]] = None) -> SessionReport:
        """Close the session and build its report.

        Args:
            summary: Host-supplied facts about the session; ``abandoned_notes``
                is the number of notes left unjudged at stop
        """
        summary = dict(summary or {})
        abandoned = int(summary.get("abandoned_notes", 0))

        folded = fold_outcomes(self._log)
        if folded != self._aggregates:
            logger.error(
                f"Incremental aggregates {self._aggregates} differ from folded log {folded}"
            )
        counted_abandoned = abandoned if self._config.count_abandoned_in_accuracy else 0

        ended_at = datetime.now()
        started_at = self._started_at or ended_at
        report = SessionReport(
            session_id=self._session_id or "",
            difficulty=self._config.difficulty,
            started_at=started_at.isoformat(),
            ended_at=ended_at.isoformat(),
            total_notes=folded.total,
            correct_notes=folded.correct,
            wrong_notes=folded.wrong,
            missed_notes=folded.missed,
            abandoned_notes=abandoned,
            accuracy=folded.accuracy(counted_abandoned),
            average_cents_deviation=folded.average_cents_deviation,
            average_response_time=folded.average_response_time,
            max_streak=folded.max_streak,
            total_points=folded.points,
            outcomes=tuple(self._log),
            summary=summary,
        )
        self._tracking = False
        logger.info(
            f"Ended session {report.session_id}: {report.correct_notes}/{report.total_notes} "
            f"correct, accuracy {report.accuracy:.1f}%"
        )
        return report
