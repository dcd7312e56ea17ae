import json
import random
import unittest

import pytest

from crescendo.core.errors import ScheduleError
from crescendo.judgment.schedule import (
    BEATS_PER_BAR,
    DURATION_BEATS,
    build_schedule,
    load_schedule,
    parse_schedule,
    random_bars,
    validate_schedule,
)
from crescendo.note_types import NoteState, TargetNote


class TestBuildSchedule(unittest.TestCase):
    def test_beats_and_tempo(self):
        notes = build_schedule(
            [
                {"note": "C", "octave": 4, "duration": "quarter"},
                {"note": "D", "octave": 4, "duration": "half"},
                {"note": "E4", "beats": 1},
            ],
            tempo=120,
            lead_in=1.0,
            tolerance=0.25,
        )
        self.assertEqual([n.name for n in notes], ["C4", "D4", "E4"])
        self.assertEqual([n.index for n in notes], [0, 1, 2])
        # Onsets at 1.0, 1.5 and 2.5 seconds
        self.assertEqual([(n.window_start, n.window_end) for n in notes],
                         [(0.75, 1.25), (1.25, 1.75), (2.25, 2.75)])
        self.assertEqual([n.beats for n in notes], [1.0, 2.0, 1.0])
        self.assertTrue(all(n.state is NoteState.SCHEDULED for n in notes))
        self.assertAlmostEqual(notes[0].expected_frequency, 261.6256, places=3)

    def test_flats_are_normalized(self):
        notes = build_schedule([{"name": "Bb3"}], lead_in=1.0)
        self.assertEqual(notes[0].pitch_class, "A#")
        self.assertEqual(notes[0].octave, 3)

    def test_window_does_not_start_before_zero(self):
        notes = build_schedule([{"note": "A4"}], lead_in=0.0, tolerance=0.5)
        self.assertEqual(notes[0].window_start, 0.0)

    def test_pinned_onset(self):
        notes = build_schedule([{"note": "A4", "time": 5.0}, {"note": "B4"}], tempo=60, tolerance=0.5)
        self.assertEqual(notes[0].window_start, 4.5)
        self.assertEqual(notes[1].window_start, 5.5)

    def test_invalid_entries(self):
        for entries in (
            [{"note": "H4"}],
            [{"note": "C"}],
            [{"note": "C4", "duration": "breve"}],
            [{"note": "C4", "beats": -1}],
            [{"octave": 4}],
            [{"note": "C", "octave": 4.7}],
            [{"note": "C", "octave": True}],
            [{"note": "C4", "time": "soon"}],
            [{"note": "C4", "time": float("nan")}],
            ["C4"],
            [],
        ):
            with self.subTest(entries=entries):
                with self.assertRaises(ScheduleError):
                    build_schedule(entries)

    def test_out_of_range_note(self):
        with self.assertRaises(ScheduleError):
            build_schedule([{"note": "C", "octave": 0}])
        with self.assertRaises(ScheduleError):
            build_schedule([{"note": "C", "octave": 8}])

    def test_invalid_tempo(self):
        with self.assertRaises(ScheduleError):
            build_schedule([{"note": "C4"}], tempo=0)
        with self.assertRaises(ScheduleError):
            build_schedule([{"note": "C4"}], tempo="fast")
        with self.assertRaises(ScheduleError):
            build_schedule([{"note": "C4"}], lead_in=None)

    def test_integral_float_octave(self):
        notes = build_schedule([{"note": "C", "octave": 4.0}])
        self.assertEqual(notes[0].octave, 4)


class TestValidateSchedule(unittest.TestCase):
    def note(self, **changes):
        values = dict(
            pitch_class="A", octave=4, expected_frequency=440.0,
            window_start=0.0, window_end=1.0, index=0,
        )
        values.update(changes)
        return TargetNote(**values)

    def test_sorted_by_window_start(self):
        notes = validate_schedule([self.note(window_start=2.0, window_end=3.0, index=1), self.note()])
        self.assertEqual([n.index for n in notes], [0, 1])

    def test_rejections(self):
        cases = [
            self.note(pitch_class="Bb"),
            self.note(octave=4.0),
            self.note(octave=True),
            self.note(window_start=float("nan")),
            self.note(window_end=float("inf")),
            self.note(window_start=-0.5),
            self.note(window_start=1.0, window_end=1.0),
            self.note(expected_frequency=466.16),
            self.note(expected_frequency=5000.0),
            self.note(state=NoteState.CORRECT),
        ]
        for note in cases:
            with self.subTest(note=note):
                with self.assertRaises(ScheduleError):
                    validate_schedule([note])

    def test_duplicate_indices(self):
        with self.assertRaises(ScheduleError):
            validate_schedule([self.note(), self.note(window_start=2.0, window_end=3.0)])

    def test_not_a_target_note(self):
        with self.assertRaises(ScheduleError):
            validate_schedule([{"note": "A4"}])


class TestScheduleFiles(unittest.TestCase):
    def test_bar_form(self):
        bars = [
            {"bar": 1, "notes": [{"note": "C", "octave": 4, "duration": "whole"}]},
            {"bar": 2, "notes": [{"note": "G", "octave": 4, "duration": "half"},
                                 {"note": "E", "octave": 4, "duration": "half"}]},
        ]
        notes = parse_schedule(bars, tempo=60, lead_in=1.0)
        self.assertEqual([n.name for n in notes], ["C4", "G4", "E4"])
        self.assertEqual([n.window_start for n in notes], [0.5, 4.5, 6.5])

    def test_flat_object_form(self):
        notes = parse_schedule({"tempo": 120, "lead_in": 2.0, "notes": [{"note": "A4"}, {"note": "B4"}]})
        self.assertEqual([n.window_start for n in notes], [1.5, 2.0])

    def test_arguments_override_file(self):
        notes = parse_schedule({"tempo": 120, "notes": [{"note": "A4"}, {"note": "B4"}]}, tempo=60, lead_in=1.0)
        self.assertEqual([n.window_start for n in notes], [0.5, 1.5])

    def test_unsupported_data(self):
        with self.assertRaises(ScheduleError):
            parse_schedule({"melody": []})
        with self.assertRaises(ScheduleError):
            parse_schedule("C4 D4")
        with self.assertRaises(ScheduleError):
            parse_schedule([{"bar": 1, "notes": "C4"}])
        with self.assertRaises(ScheduleError):
            parse_schedule({"tempo": "fast", "notes": [{"note": "C4"}]})
        with self.assertRaises(ScheduleError):
            parse_schedule({"lead_in": "later", "notes": [{"note": "C4"}]})


def test_load_schedule(tmp_path):
    path = tmp_path / "song.json"
    path.write_text(json.dumps({"tempo": 60, "lead_in": 1.0, "notes": [{"note": "C4"}, {"note": "E4"}]}))
    notes = load_schedule(path, tolerance=0.25)
    assert [n.name for n in notes] == ["C4", "E4"]
    assert notes[1].window_end == 2.25


def test_load_schedule_errors(tmp_path):
    with pytest.raises(ScheduleError):
        load_schedule(tmp_path / "missing.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ScheduleError):
        load_schedule(broken)


@pytest.mark.parametrize("difficulty", ["easy", "medium", "hard"])
def test_random_bars_fill_each_bar(difficulty):
    bars = random_bars(6, difficulty, random.Random(3))
    assert [bar["bar"] for bar in bars] == [1, 2, 3, 4, 5, 6]
    for bar in bars:
        assert sum(DURATION_BEATS[n["duration"]] for n in bar["notes"]) == BEATS_PER_BAR
    notes = parse_schedule(bars)
    assert len(notes) == sum(len(bar["notes"]) for bar in bars)


def test_random_bars_unknown_difficulty():
    with pytest.raises(ValueError):
        random_bars(1, "impossible")
