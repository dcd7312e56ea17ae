import threading
import unittest

import numpy as np

from crescendo.audio.frame import AudioFrame
from crescendo.core.config import AudioConfig, DetectionConfig, SessionConfig
from crescendo.core.errors import AcquisitionError
from crescendo.core.interfaces import ISignalSource
from crescendo.detection.estimator import PitchEstimator
from crescendo.judgment.clock import ManualClock, SessionClock
from crescendo.judgment.engine import JudgmentEngine
from crescendo.note_types import NoteOutcome, NoteState, TargetNote
from crescendo.note_utils import note_to_frequency
from crescendo.services.practice_session import PracticeSession

SAMPLE_RATE = 44100


class FakeSource(ISignalSource):
    """Plays a fixed tone, or silence once muted."""

    def __init__(self, freq=None, fail=False):
        self.freq = freq
        self.fail = fail
        self.initialized = False
        self.suspended = False
        self.closed = False
        self.frames_served = 0

    @property
    def sample_rate(self):
        return SAMPLE_RATE

    def initialize(self):
        if self.fail:
            raise AcquisitionError("permission denied")
        self.initialized = True

    def get_frame(self):
        self.frames_served += 1
        t = np.arange(4096) / SAMPLE_RATE
        if self.freq is None or self.suspended:
            return AudioFrame(np.zeros(4096), SAMPLE_RATE)
        return AudioFrame(0.5 * np.sin(2 * np.pi * self.freq * t), SAMPLE_RATE)

    def suspend(self):
        self.suspended = True

    def resume(self):
        self.suspended = False

    def close(self):
        self.closed = True


class FlakySource(FakeSource):
    """Raises from get_frame on the listed call numbers."""

    def __init__(self, freq=None, failing_calls=(2,)):
        super().__init__(freq)
        self.failing_calls = set(failing_calls)

    def get_frame(self):
        frame = super().get_frame()
        if self.frames_served in self.failing_calls:
            raise OSError("device glitch")
        return frame


def c4_schedule(start=0.0, end=1.0):
    return [TargetNote("C", 4, note_to_frequency("C", 4), start, end, index=0)]


class TestPracticeSession(unittest.TestCase):
    def make_session(self, source, schedule=None, clock=None, session_config=None):
        return PracticeSession(
            source=source,
            estimator=PitchEstimator(DetectionConfig(methods=("autocorrelation",))),
            engine=JudgmentEngine(schedule or c4_schedule()),
            clock=clock or SessionClock(ManualClock()),
            session_config=session_config,
        )

    def test_ticks_judge_and_record(self):
        source = FakeSource(note_to_frequency("C", 4))
        session = self.make_session(source)
        estimates = []
        session.events.on_estimate(lambda estimate, pitch: estimates.append(str(pitch)))

        session.start(background=False)
        self.assertTrue(source.initialized)
        self.assertEqual(session.tick(0.1), [])
        records = session.tick(0.15)

        self.assertEqual([r.outcome for r in records], [NoteOutcome.CORRECT])
        self.assertEqual(estimates, ["C4", "C4"])
        self.assertEqual(session.statistics.log, tuple(records))
        self.assertTrue(session.finished)

        report = session.stop()
        self.assertEqual(report.correct_notes, 1)
        self.assertEqual(report.abandoned_notes, 0)
        self.assertTrue(source.closed)

    def test_acquisition_error_propagates(self):
        session = self.make_session(FakeSource(fail=True))
        with self.assertRaises(AcquisitionError):
            session.start(background=False)
        self.assertFalse(session.is_running())

    def test_start_twice(self):
        session = self.make_session(FakeSource())
        session.start(background=False)
        with self.assertRaises(RuntimeError):
            session.start(background=False)

    def test_ticks_read_the_session_clock(self):
        time_source = ManualClock()
        source = FakeSource(note_to_frequency("C", 4))
        session = self.make_session(source, clock=SessionClock(time_source))
        session.start(background=False)
        time_source.advance(0.1)
        session.tick()
        time_source.advance(0.05)
        records = session.tick()
        self.assertAlmostEqual(records[0].response_time, 0.15)

    def test_pause_freezes_judgment(self):
        time_source = ManualClock()
        source = FakeSource()
        session = self.make_session(source, clock=SessionClock(time_source))
        session.start(background=False)

        time_source.advance(0.5)
        session.pause()
        self.assertTrue(source.suspended)
        time_source.advance(10.0)
        self.assertEqual(session.tick(), [])
        self.assertEqual(source.frames_served, 0)

        session.resume()
        self.assertFalse(source.suspended)
        self.assertAlmostEqual(session.clock.elapsed(), 0.5)
        self.assertEqual(session.tick(), [])
        self.assertEqual(session.engine.notes[0].state, NoteState.OPEN)

        time_source.advance(0.6)
        records = session.tick()
        self.assertEqual([r.outcome for r in records], [NoteOutcome.MISSED])

    def test_stop_abandons_open_notes(self):
        source = FakeSource()
        session = self.make_session(
            source, session_config=SessionConfig(count_abandoned_in_accuracy=True)
        )
        ended = []
        session.events.on_session_ended(ended.append)
        session.start(background=False)
        session.tick(0.2)

        report = session.stop()
        self.assertEqual(report.abandoned_notes, 1)
        self.assertEqual(report.total_notes, 0)
        self.assertEqual(report.accuracy, 0.0)
        self.assertEqual(session.engine.notes[0].state, NoteState.OPEN)
        self.assertEqual(ended, [report])

        served = source.frames_served
        self.assertEqual(session.tick(0.3), [])
        self.assertEqual(source.frames_served, served)
        self.assertIs(session.stop(), report)

        # Listeners are released once the session has ended
        session.events.emit_session_ended(report)
        self.assertEqual(ended, [report])

    def test_resume_failure_keeps_session_paused(self):
        source = FakeSource()
        session = self.make_session(source)
        session.start(background=False)
        session.pause()

        def lost():
            raise AcquisitionError("device unplugged")

        source.resume = lost
        with self.assertRaises(AcquisitionError):
            session.resume()
        self.assertTrue(session.clock.is_paused)
        self.assertEqual(session.tick(), [])
        session.stop()

    def test_stop_before_start(self):
        with self.assertRaises(RuntimeError):
            self.make_session(FakeSource()).stop()

    def test_background_loop(self):
        source = FakeSource(note_to_frequency("C", 4))
        session = PracticeSession(
            source=source,
            estimator=PitchEstimator(DetectionConfig(methods=("autocorrelation",))),
            engine=JudgmentEngine(c4_schedule(end=60.0)),
            audio_config=AudioConfig(detection_rate_hz=100.0),
        )
        ticked = threading.Event()
        session.events.on_estimate(lambda estimate, pitch: ticked.set())

        session.start()
        self.assertTrue(ticked.wait(5.0))
        session.stop()

        served = source.frames_served
        ticked.clear()
        self.assertFalse(ticked.wait(0.1))
        self.assertEqual(source.frames_served, served)
        self.assertFalse(session.is_running())


    def test_failed_acquisition_is_an_empty_tick(self):
        source = FlakySource(note_to_frequency("C", 4), failing_calls=range(1, 100))
        session = self.make_session(source)
        estimates = []
        session.events.on_estimate(lambda estimate, pitch: estimates.append(estimate))

        session.start(background=False)
        self.assertEqual(session.tick(0.1), [])
        self.assertTrue(estimates[0].is_abstention)

        records = session.tick(1.1)
        self.assertEqual([r.outcome for r in records], [NoteOutcome.MISSED])
        self.assertEqual(session.statistics.current_stats()["missed_notes"], 1)
        session.stop()

    def test_background_loop_survives_errors(self):
        source = FlakySource(note_to_frequency("C", 4), failing_calls=(2,))
        engine = JudgmentEngine(c4_schedule(end=60.0))
        session = PracticeSession(
            source=source,
            estimator=PitchEstimator(DetectionConfig(methods=("autocorrelation",))),
            engine=engine,
            audio_config=AudioConfig(detection_rate_hz=100.0),
        )
        process = engine.process
        calls = []

        def process_once_failing(estimate, now):
            calls.append(now)
            if len(calls) == 3:
                raise RuntimeError("judgment failure")
            return process(estimate, now)

        engine.process = process_once_failing
        enough = threading.Event()
        session.events.on_estimate(
            lambda estimate, pitch: enough.set() if source.frames_served >= 10 else None
        )

        session.start()
        self.assertTrue(enough.wait(5.0))
        session.stop()
        self.assertGreaterEqual(len(calls), 10)

class TestSessionClock(unittest.TestCase):
    def test_paused_time_is_excluded(self):
        time_source = ManualClock(100.0)
        clock = SessionClock(time_source)
        self.assertEqual(clock.elapsed(), 0.0)
        clock.start()
        time_source.advance(1.0)
        clock.pause()
        time_source.advance(5.0)
        self.assertAlmostEqual(clock.elapsed(), 1.0)
        clock.resume()
        time_source.advance(1.0)
        self.assertAlmostEqual(clock.elapsed(), 2.0)
        self.assertAlmostEqual(clock.paused_total, 5.0)

    def test_pause_before_start_is_ignored(self):
        clock = SessionClock(ManualClock())
        clock.pause()
        self.assertFalse(clock.is_paused)


if __name__ == "__main__":
    unittest.main()
