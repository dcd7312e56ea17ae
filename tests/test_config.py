import json
import unittest

import pytest

from crescendo.core.config import (
    AudioConfig,
    ConfigManager,
    DetectionConfig,
    JudgmentConfig,
    SessionConfig,
)


class TestConfigDataclasses(unittest.TestCase):
    def test_defaults(self):
        judgment = JudgmentConfig()
        self.assertEqual(judgment.agreement_threshold, 0.85)
        self.assertEqual(judgment.wrong_note_buffer, 0.4)
        self.assertEqual(judgment.min_corroborating_samples, 2)
        self.assertEqual(DetectionConfig().methods, ("autocorrelation", "spectral_peak", "chroma"))
        self.assertAlmostEqual(AudioConfig().detection_period, 0.05)
        self.assertFalse(SessionConfig().count_abandoned_in_accuracy)

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            JudgmentConfig(agreement_threshold=1.5)
        with self.assertRaises(ValueError):
            JudgmentConfig(smoothing_horizon=0)
        with self.assertRaises(ValueError):
            JudgmentConfig(min_corroborating_samples=0)
        with self.assertRaises(ValueError):
            DetectionConfig(min_frequency=500.0, max_frequency=100.0)
        with self.assertRaises(ValueError):
            AudioConfig(detection_rate_hz=0)


def test_defaults_are_written(tmp_path):
    manager = ConfigManager(tmp_path)
    for name in ("audio", "detection", "judgment", "session"):
        assert (tmp_path / f"{name}.json").exists()
    assert manager.judgment_config() == JudgmentConfig()
    assert manager.detection_config() == DetectionConfig()


def test_existing_file_and_unknown_keys(tmp_path):
    (tmp_path / "judgment.json").write_text(json.dumps({"wrong_note_buffer": 0.3, "bogus": 1}))
    manager = ConfigManager(tmp_path)
    config = manager.judgment_config()
    assert config.wrong_note_buffer == 0.3
    assert config.agreement_threshold == 0.85
    assert "bogus" not in manager.get_config("judgment")


def test_update_and_reset(tmp_path):
    manager = ConfigManager(tmp_path)
    assert manager.update_config("session", {"count_abandoned_in_accuracy": True})
    assert ConfigManager(tmp_path).session_config().count_abandoned_in_accuracy

    with pytest.raises(ValueError):
        manager.update_config("judgment", {"agreement_threshold": 2.0})
    assert manager.judgment_config().agreement_threshold == 0.85

    assert manager.reset_config("session")
    assert not manager.session_config().count_abandoned_in_accuracy
    assert not manager.update_config("nope", {})


def test_overrides(tmp_path):
    manager = ConfigManager(tmp_path)
    assert manager.audio_config(device_id=3).device_id == 3
    assert manager.detection_config(methods=["chroma"]).methods == ("chroma",)


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    (tmp_path / "audio.json").write_text("{")
    assert ConfigManager(tmp_path).audio_config() == AudioConfig()
