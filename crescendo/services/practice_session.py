"""Practice session that ties audio input, pitch estimation, judgment and statistics together."""

from __future__ import annotations
import threading
from typing import List, Optional

from ..logger import get_logger
from ..note_types import UNDETECTED, NoteOutcomeRecord, PitchEstimate
from ..note_utils import frequency_to_note
from ..core.config import AudioConfig, SessionConfig
from ..core.events import JudgmentEvents
from ..core.interfaces import ISignalSource
from ..detection.estimator import PitchEstimator
from ..judgment.clock import SessionClock
from ..judgment.engine import JudgmentEngine
from ..stats import SessionReport, SessionStatistics

logger = get_logger(__name__)


class PracticeSession:
    """One practice session: a single input feeding a single judgment timeline.

    A fixed-period detection tick acquires a frame, fuses a pitch estimate,
    hands it to the judgment engine and records verdicts. All of this runs
    under one lock per session, so readers such as a UI thread see
    consistent state. Time is read from a SessionClock, which stops while
    the session is paused.
    """

    def __init__(
        self,
        source: ISignalSource,
        estimator: PitchEstimator,
        engine: JudgmentEngine,
        statistics: Optional[SessionStatistics] = None,
        events: Optional[JudgmentEvents] = None,
        clock: Optional[SessionClock] = None,
        audio_config: Optional[AudioConfig] = None,
        session_config: Optional[SessionConfig] = None,
    ) -> None:
        """Initialize the session without touching the input device.

        Args:
            source: Where frames come from
            estimator: Fuses the detection methods for each frame
            engine: Judges estimates against the schedule
            statistics: Outcome log, or None to create one
            events: Listeners for estimates and verdicts, or None to create one
            clock: Session clock, or None for one on time.monotonic
            audio_config: Supplies the detection rate
            session_config: Difficulty label and accuracy accounting
        """
        self._source = source
        self._estimator = estimator
        self._engine = engine
        self._statistics = statistics or SessionStatistics()
        self._events = events or JudgmentEvents()
        self._clock = clock or SessionClock()
        self._audio_config = audio_config or AudioConfig()
        self._session_config = session_config or SessionConfig()

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started = False
        self._stopped = False
        self._report: Optional[SessionReport] = None

    @property
    def events(self) -> JudgmentEvents:
        return self._events

    @property
    def engine(self) -> JudgmentEngine:
        return self._engine

    @property
    def statistics(self) -> SessionStatistics:
        return self._statistics

    @property
    def clock(self) -> SessionClock:
        return self._clock

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._engine.finished

    def is_running(self) -> bool:
        return self._started and not self._stopped

    def start(self, background: bool = True) -> None:
        """Acquire the input and start the session clock.

        Args:
            background: Run the detection loop on a daemon thread. Pass False
                to drive the session by calling tick() directly.

        Raises:
            AcquisitionError: If the input cannot be opened
            RuntimeError: If the session was already started
        """
        with self._lock:
            if self._started:
                raise RuntimeError("Session already started")

            self._source.initialize()
            self._statistics.start_session(self._session_config)
            self._clock.start()
            self._started = True

        if background:
            self._thread = threading.Thread(
                target=self._run, name="crescendo-detection", daemon=True
            )
            self._thread.start()
        logger.info(
            f"Practice session started at {self._audio_config.detection_rate_hz:g} Hz detection"
        )

    def _run(self) -> None:
        period = self._audio_config.detection_period
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in detection tick: {e}", exc_info=True)
            self._stop_event.wait(period)

    def tick(self, now: Optional[float] = None) -> List[NoteOutcomeRecord]:
        """Run one acquire, estimate, judge and record cycle.

        Args:
            now: Session time to judge at, or None to read the clock

        Returns:
            Verdicts reached during this tick
        """
        with self._lock:
            if not self._started or self._stopped or self._clock.is_paused:
                return []

            if now is None:
                now = self._clock.elapsed()
            try:
                frame = self._source.get_frame()
                estimate = self._estimator.estimate(frame, timestamp=now)
            except Exception as e:
                # No information this tick; windows still open and close
                logger.error(f"Error acquiring or estimating at {now:.3f}s: {e}", exc_info=True)
                estimate = PitchEstimate.silent(timestamp=now)
            pitch = UNDETECTED if estimate.is_abstention else frequency_to_note(estimate.frequency)
            self._events.emit_estimate(estimate, pitch)

            records = self._engine.process(estimate, now)
            for record in records:
                self._statistics.record_outcome(record)
            return records

    def replay(self, duration: float) -> List[NoteOutcomeRecord]:
        """Drive the session over a recorded input on virtual time.

        Ticks at the detection rate from 0 to `duration` seconds, moving a
        seekable source along with the session time. Stops early once every
        note has been judged.
        """
        period = self._audio_config.detection_period
        seek = getattr(self._source, "seek", None)
        records = []
        step = 0
        while True:
            now = step * period
            if now > duration + period:
                break
            if seek is not None:
                seek(now)
            records.extend(self.tick(now))
            if self.finished:
                break
            step += 1
        return records

    def pause(self) -> None:
        with self._lock:
            if not self.is_running() or self._clock.is_paused:
                return
            self._clock.pause()
            self._source.suspend()
            logger.info(f"Session paused at {self._clock.elapsed():.2f}s")

    def resume(self) -> None:
        """Resume a paused session.

        Raises:
            AcquisitionError: If the input cannot be restarted; the session stays paused
        """
        with self._lock:
            if not self.is_running() or not self._clock.is_paused:
                return
            self._source.resume()
            self._clock.resume()
            logger.info("Session resumed")

    def stop(self) -> SessionReport:
        """Stop detection, release the input and build the session report.

        Notes still open or scheduled are abandoned, not judged. Listeners
        are removed once session_ended has been emitted. Calling stop()
        again returns the same report.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
            self._thread = None

        with self._lock:
            if self._report is not None:
                return self._report
            if not self._started:
                raise RuntimeError("Session was never started")

            self._stopped = True
            self._source.close()
            abandoned = self._engine.abandon()
            self._report = self._statistics.end_session(
                {
                    "abandoned_notes": len(abandoned),
                    "elapsed": self._clock.elapsed(),
                    "paused": self._clock.paused_total,
                }
            )
        logger.info("Practice session stopped")
        self._events.emit_session_ended(self._report)
        self._events.clear()
        return self._report
