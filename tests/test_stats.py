import unittest

from crescendo.core.config import SessionConfig
from crescendo.note_types import NoteOutcome, NoteOutcomeRecord
from crescendo.stats import SessionAggregates, SessionStatistics, fold_outcomes


def record(index, outcome, cents=None, response_time=None, points=0):
    return NoteOutcomeRecord(
        note_index=index,
        pitch_class="C",
        octave=4,
        expected_frequency=261.63,
        outcome=outcome,
        decided_at=index + 0.5,
        window_start=float(index),
        window_end=index + 1.0,
        cents_deviation=cents,
        response_time=response_time,
        points=points,
    )


OUTCOMES = [
    record(0, NoteOutcome.CORRECT, cents=4.0, response_time=0.2, points=120),
    record(1, NoteOutcome.CORRECT, cents=-10.0, response_time=0.4, points=110),
    record(2, NoteOutcome.WRONG),
    record(3, NoteOutcome.CORRECT, cents=16.0, response_time=0.3, points=105),
    record(4, NoteOutcome.MISSED),
]


class TestSessionStatistics(unittest.TestCase):
    def setUp(self):
        self.stats = SessionStatistics()
        self.stats.start_session(SessionConfig(difficulty="easy"))

    def test_incremental_matches_fold(self):
        snapshots = []
        for item in OUTCOMES:
            self.stats.record_outcome(item)
            snapshots.append(self.stats.current_stats()["accuracy"])

        self.assertEqual(self.stats.aggregates, fold_outcomes(self.stats.log))
        for actual, expected in zip(snapshots, [100.0, 100.0, 2 / 3 * 100.0, 75.0, 60.0]):
            self.assertAlmostEqual(actual, expected)

        report = self.stats.end_session()
        self.assertEqual(report.accuracy, self.stats.current_stats()["accuracy"])
        self.assertEqual(report.total_notes, 5)
        self.assertEqual((report.correct_notes, report.wrong_notes, report.missed_notes), (3, 1, 1))
        self.assertAlmostEqual(report.average_cents_deviation, 10.0)
        self.assertAlmostEqual(report.average_response_time, 0.3)
        self.assertEqual(report.max_streak, 2)
        self.assertEqual(report.total_points, 335)
        self.assertEqual(report.difficulty, "easy")
        self.assertEqual(report.outcomes, tuple(OUTCOMES))

    def test_current_stats_streak(self):
        for item in OUTCOMES[:2]:
            self.stats.record_outcome(item)
        self.assertEqual(self.stats.current_stats()["streak"], 2)
        self.stats.record_outcome(OUTCOMES[2])
        current = self.stats.current_stats()
        self.assertEqual(current["streak"], 0)
        self.assertEqual(current["max_streak"], 2)

    def test_log_is_append_only(self):
        self.stats.record_outcome(OUTCOMES[0])
        log = self.stats.log
        self.stats.record_outcome(OUTCOMES[1])
        self.assertEqual(len(log), 1)
        self.assertEqual(len(self.stats.log), 2)

    def test_duplicate_outcome_rejected(self):
        self.stats.record_outcome(OUTCOMES[0])
        with self.assertRaises(ValueError):
            self.stats.record_outcome(OUTCOMES[0])

    def test_outcome_without_session_is_ignored(self):
        stats = SessionStatistics()
        stats.record_outcome(OUTCOMES[0])
        self.assertEqual(stats.log, ())

    def test_abandoned_not_counted_by_default(self):
        self.stats.record_outcome(OUTCOMES[0])
        report = self.stats.end_session({"abandoned_notes": 3})
        self.assertEqual(report.abandoned_notes, 3)
        self.assertEqual(report.accuracy, 100.0)
        self.assertFalse(self.stats.is_tracking)

    def test_abandoned_counted_when_configured(self):
        stats = SessionStatistics()
        stats.start_session(SessionConfig(count_abandoned_in_accuracy=True))
        stats.record_outcome(OUTCOMES[0])
        report = stats.end_session({"abandoned_notes": 3})
        self.assertEqual(report.accuracy, 25.0)

    def test_empty_session(self):
        report = self.stats.end_session()
        self.assertEqual(report.accuracy, 0.0)
        self.assertIsNone(report.average_cents_deviation)
        self.assertIsNone(report.average_response_time)

    def test_report_to_dict(self):
        self.stats.record_outcome(OUTCOMES[0])
        data = self.stats.end_session({"abandoned_notes": 0, "elapsed": 4.0}).to_dict()
        self.assertEqual(data["correct_notes"], 1)
        self.assertEqual(data["outcomes"][0]["outcome"], "correct")
        self.assertEqual(data["outcomes"][0]["target"], "C4")
        self.assertEqual(data["summary"]["elapsed"], 4.0)
        self.assertTrue(data["session_id"].startswith("session_"))


class TestSessionAggregates(unittest.TestCase):
    def test_add_returns_new_value(self):
        empty = SessionAggregates()
        one = empty.add(OUTCOMES[0])
        self.assertEqual(empty.total, 0)
        self.assertEqual(one.total, 1)

    def test_fold_of_prefixes(self):
        running = SessionAggregates()
        for i, item in enumerate(OUTCOMES):
            running = running.add(item)
            self.assertEqual(running, fold_outcomes(OUTCOMES[: i + 1]))


if __name__ == "__main__":
    unittest.main()
