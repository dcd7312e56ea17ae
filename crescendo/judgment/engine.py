from typing import Dict, List, Optional, Sequence

from ..core.config import JudgmentConfig
from ..core.events import JudgmentEvents
from ..logger import get_logger
from ..note_types import (
    JudgmentSample,
    NoteOutcome,
    NoteOutcomeRecord,
    NoteState,
    PitchEstimate,
    TargetNote,
)
from ..note_utils import cents_between, frequency_to_note
from .metrics import (
    classify_error,
    most_common_note,
    performance_quality,
    summarize_pitch,
    summarize_timing,
    summarize_volume,
)
from .sample_buffer import SampleBuffer, Vote, full_note_key, pitch_class_key
from .schedule import validate_schedule
from .scoring import score_correct

# Get logger for this module
logger = get_logger(__name__)

# Float slack for comparisons between session times
TIME_EPSILON = 1e-9

_OUTCOME_STATES = {
    NoteOutcome.CORRECT: NoteState.CORRECT,
    NoteOutcome.WRONG: NoteState.WRONG,
    NoteOutcome.MISSED: NoteState.MISSED,
}


class JudgmentEngine:
    """
    Judges incoming pitch estimates against a schedule of target notes.

    Each note moves Scheduled -> Open -> Correct | Wrong | Missed. A note
    opens when the session time reaches its window start and is forced to
    Missed once the time passes its window end. While open it collects
    qualifying estimates in a sliding buffer; a weighted vote over that
    buffer decides Correct, or Wrong once a disagreeing vote has outlasted
    the wrong-note buffer period. Terminal notes never change again.

    The engine is not thread-safe; the owning session serializes calls.
    """

    def __init__(
        self,
        schedule: Sequence[TargetNote],
        config: Optional[JudgmentConfig] = None,
        events: Optional[JudgmentEvents] = None,
    ):
        """Initialize the engine.

        Raises:
            ScheduleError: If the schedule is malformed
        """
        self._config = config or JudgmentConfig()
        self._notes: List[TargetNote] = validate_schedule(schedule)
        self._events = events
        self._key = full_note_key if self._config.match_octave else pitch_class_key

        self._buffers: Dict[int, SampleBuffer] = {}
        self._history: Dict[int, List[JudgmentSample]] = {}
        self._wrong_since: Dict[int, Optional[float]] = {}
        self._last_wrong_vote: Dict[int, Vote] = {}

        self._streak = 0
        self._closed = False
        logger.debug(f"JudgmentEngine ready with {len(self._notes)} notes")

    @property
    def config(self) -> JudgmentConfig:
        return self._config

    @property
    def notes(self) -> List[TargetNote]:
        return list(self._notes)

    @property
    def open_notes(self) -> List[TargetNote]:
        return [n for n in self._notes if n.state is NoteState.OPEN]

    @property
    def streak(self) -> int:
        return self._streak

    @property
    def finished(self) -> bool:
        return all(n.state.is_terminal for n in self._notes)

    def target_key(self, note: TargetNote) -> str:
        if self._config.match_octave:
            return note.name
        return note.pitch_class

    def advance(self, now: float) -> List[NoteOutcomeRecord]:
        """Open and close windows for the session time `now`.

        Also finalizes notes whose wrong-note timer ran out.
        """
        if self._closed:
            return []

        records = []
        for note in self._notes:
            if note.state is NoteState.SCHEDULED and now >= note.window_start - TIME_EPSILON:
                self._open(note)

            if note.state is not NoteState.OPEN:
                continue

            if now > note.window_end + TIME_EPSILON:
                records.append(self._finalize(note, NoteOutcome.MISSED, now))
            elif self._wrong_since.get(note.index) is not None:
                record = self._evaluate(note, now)
                if record:
                    records.append(record)
        return records

    def submit(self, estimate: PitchEstimate, now: float) -> List[NoteOutcomeRecord]:
        """Offer one fused estimate to the closest open note.

        Abstentions and estimates below the confidence or volume floor carry
        no information and are ignored.
        """
        if self._closed or estimate.is_abstention:
            return []
        if estimate.confidence < self._config.min_confidence:
            return []
        if estimate.volume < self._config.min_volume:
            return []

        pitch = frequency_to_note(estimate.frequency)
        if not pitch.detected:
            return []

        note = self._claimant(now)
        if note is None:
            return []

        sample = JudgmentSample(
            timestamp=now,
            frequency=estimate.frequency,
            confidence=estimate.confidence,
            volume=estimate.volume,
            pitch=pitch,
            method=estimate.method,
        )
        self._buffers[note.index].add(sample)
        self._history[note.index].append(sample)
        logger.debug(f"{note.name} <- {pitch} ({estimate.confidence:.2f}) at {now:.3f}")

        record = self._evaluate(note, now)
        return [record] if record else []

    def process(self, estimate: PitchEstimate, now: float) -> List[NoteOutcomeRecord]:
        """One detection tick: advance windows, then submit the estimate."""
        records = self.advance(now)
        records.extend(self.submit(estimate, now))
        return records

    def abandon(self) -> List[TargetNote]:
        """Stop judging. Returns notes that never reached a verdict, untouched."""
        self._closed = True
        abandoned = [n for n in self._notes if not n.state.is_terminal]
        if abandoned:
            logger.info(f"Abandoning {len(abandoned)} unjudged notes")
        self._buffers.clear()
        return abandoned

    def _open(self, note: TargetNote) -> None:
        note.state = NoteState.OPEN
        self._buffers[note.index] = SampleBuffer(self._config.smoothing_horizon, key=self._key)
        self._history[note.index] = []
        self._wrong_since[note.index] = None
        logger.debug(
            f"Opened {note.name} [{note.window_start:.3f}, {note.window_end:.3f}]"
        )
        if self._events:
            self._events.emit_note_opened(note)

    def _claimant(self, now: float) -> Optional[TargetNote]:
        """The open note whose window center is nearest to now; earlier index on ties."""
        best = None
        best_distance = None
        for note in self._notes:
            if note.state is not NoteState.OPEN:
                continue
            if not note.window_start - TIME_EPSILON <= now <= note.window_end + TIME_EPSILON:
                continue
            distance = abs(now - note.window_center)
            if best is None or distance < best_distance or (
                distance == best_distance and note.index < best.index
            ):
                best, best_distance = note, distance
        return best

    def _evaluate(self, note: TargetNote, now: float) -> Optional[NoteOutcomeRecord]:
        buffer = self._buffers[note.index]
        vote = buffer.vote(now, self._config.agreement_threshold)
        if vote is None:
            # No dominant pitch; a running wrong-note timer keeps running
            return None

        target = self.target_key(note)
        if vote.key == target:
            if self._wrong_since[note.index] is not None:
                logger.debug(f"{note.name} recovered at {now:.3f}")
            self._wrong_since[note.index] = None
            corroborating = buffer.corroborating(target, self._config.cents_tolerance)
            if corroborating >= self._config.min_corroborating_samples:
                return self._finalize(note, NoteOutcome.CORRECT, now)
            return None

        self._last_wrong_vote[note.index] = vote
        started = self._wrong_since[note.index]
        if started is None:
            self._wrong_since[note.index] = now
            logger.debug(f"{note.name} hears {vote.key}, wrong-note timer started at {now:.3f}")
            started = now
        if now - started >= self._config.wrong_note_buffer - TIME_EPSILON:
            return self._finalize(note, NoteOutcome.WRONG, now)
        return None

    def _finalize(self, note: TargetNote, outcome: NoteOutcome, now: float) -> NoteOutcomeRecord:
        history = self._history.get(note.index, [])
        buffer = self._buffers.get(note.index)
        target = self.target_key(note)
        target_samples = [s for s in history if self._key(s) == target]
        wrong_samples = [s for s in history if self._key(s) != target]

        detected = None
        detected_frequency = None
        cents_deviation = None
        confidence = None
        response_time = None
        points = 0

        if outcome is not NoteOutcome.MISSED and buffer is not None:
            key = target if outcome is NoteOutcome.CORRECT else self._last_wrong_vote[note.index].key
            deciding = buffer.matching(key)
            if outcome is NoteOutcome.CORRECT:
                deciding = [
                    s for s in deciding if abs(s.pitch.cents) < self._config.cents_tolerance
                ]
            detected = deciding[-1].pitch
            detected_frequency = sum(s.frequency for s in deciding) / len(deciding)
            cents_deviation = cents_between(detected_frequency, note.expected_frequency)
            confidence = sum(s.confidence for s in deciding) / len(deciding)

        if outcome is NoteOutcome.CORRECT:
            response_time = now - note.window_start
            remaining = (note.window_end - now) / note.window_length
            points = score_correct(cents_deviation, remaining, self._streak).points
            self._streak += 1
        else:
            self._streak = 0

        timing = summarize_timing(target_samples, response_time)
        volume = summarize_volume(history)
        pitch = summarize_pitch(target_samples, note.expected_frequency)
        quality_score, quality_rating = performance_quality(timing, volume, pitch)

        record = NoteOutcomeRecord(
            note_index=note.index,
            pitch_class=note.pitch_class,
            octave=note.octave,
            expected_frequency=note.expected_frequency,
            outcome=outcome,
            decided_at=now,
            window_start=note.window_start,
            window_end=note.window_end,
            detected=detected,
            detected_frequency=detected_frequency,
            cents_deviation=cents_deviation,
            response_time=response_time,
            confidence=confidence,
            points=points,
            streak_at_time=self._streak,
            timing=timing,
            volume=volume,
            pitch=pitch,
            error_type=classify_error(outcome, wrong_samples),
            most_common_wrong=most_common_note(wrong_samples) if outcome is NoteOutcome.WRONG else None,
            quality_score=quality_score,
            quality_rating=quality_rating,
            samples=tuple(history),
        )

        note.state = _OUTCOME_STATES[outcome]
        self._buffers.pop(note.index, None)
        self._history.pop(note.index, None)
        self._wrong_since.pop(note.index, None)
        self._last_wrong_vote.pop(note.index, None)

        logger.info(
            f"{note.name} judged {outcome.value} at {now:.3f}"
            + (f" (heard {detected})" if detected else "")
        )
        if self._events:
            self._events.emit_note_judged(record)
        return record
