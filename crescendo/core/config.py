"""Configuration management for Crescendo components."""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Tuple
import json
import os
from pathlib import Path

from ..logger import get_logger

logger = get_logger(__name__)


def _check_fraction(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0.0 and 1.0")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive")


@dataclass(frozen=True)
class AudioConfig:
    """Live input settings."""

    device_id: Optional[int] = None
    sample_rate: Optional[int] = None  # None selects the device's native rate
    frame_size: int = 4096  # At least two periods of 20 Hz at 44.1 kHz
    channels: int = 1
    detection_rate_hz: float = 20.0

    def __post_init__(self):
        _check_positive("frame_size", self.frame_size)
        _check_positive("channels", self.channels)
        _check_positive("detection_rate_hz", self.detection_rate_hz)
        if self.sample_rate is not None:
            _check_positive("sample_rate", self.sample_rate)

    @property
    def detection_period(self) -> float:
        return 1.0 / self.detection_rate_hz


@dataclass(frozen=True)
class DetectionConfig:
    """Pitch estimator settings."""

    min_frequency: float = 20.0
    max_frequency: float = 4000.0
    silence_floor: float = 0.01  # Frame RMS below which every method abstains
    good_enough_correlation: float = 0.9
    chroma_confidence_ceiling: float = 0.8
    methods: Tuple[str, ...] = ("autocorrelation", "spectral_peak", "chroma")

    def __post_init__(self):
        _check_positive("min_frequency", self.min_frequency)
        if self.max_frequency <= self.min_frequency:
            raise ValueError("max_frequency must be greater than min_frequency")
        if self.silence_floor < 0:
            raise ValueError("silence_floor must not be negative")
        _check_fraction("good_enough_correlation", self.good_enough_correlation)
        _check_fraction("chroma_confidence_ceiling", self.chroma_confidence_ceiling)
        # JSON hands lists back
        object.__setattr__(self, "methods", tuple(self.methods))


@dataclass(frozen=True)
class JudgmentConfig:
    """Thresholds for the temporal judgment engine. Times are in seconds."""

    min_confidence: float = 0.4
    min_volume: float = 0.01
    smoothing_horizon: float = 0.4
    agreement_threshold: float = 0.85
    min_corroborating_samples: int = 2
    cents_tolerance: float = 50.0
    wrong_note_buffer: float = 0.4
    match_octave: bool = False
    judgment_tolerance: float = 0.5  # Half-width of a window built from a schedule

    def __post_init__(self):
        _check_fraction("min_confidence", self.min_confidence)
        _check_fraction("agreement_threshold", self.agreement_threshold)
        _check_positive("smoothing_horizon", self.smoothing_horizon)
        _check_positive("judgment_tolerance", self.judgment_tolerance)
        _check_positive("cents_tolerance", self.cents_tolerance)
        if self.min_volume < 0:
            raise ValueError("min_volume must not be negative")
        if self.wrong_note_buffer < 0:
            raise ValueError("wrong_note_buffer must not be negative")
        if self.min_corroborating_samples < 1:
            raise ValueError("min_corroborating_samples must be at least 1")


@dataclass(frozen=True)
class SessionConfig:
    """Per-session bookkeeping options."""

    difficulty: str = "custom"
    count_abandoned_in_accuracy: bool = False


CONFIG_TYPES = {
    "audio": AudioConfig,
    "detection": DetectionConfig,
    "judgment": JudgmentConfig,
    "session": SessionConfig,
}


class ConfigManager:
    """Configuration manager for Crescendo components."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            config_dir: Directory to store configuration files, or None to use default
        """
        if config_dir is None:
            # Use ~/.config/crescendo by default
            home = os.path.expanduser("~")
            config_dir = os.path.join(home, ".config", "crescendo")

        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.default_configs: Dict[str, Dict[str, Any]] = {
            name: _to_json_dict(cls()) for name, cls in CONFIG_TYPES.items()
        }

        # Load existing configurations or create default ones
        self.configs: Dict[str, Dict[str, Any]] = {}
        for config_name, default_config in self.default_configs.items():
            self.configs[config_name] = self.load_config(config_name, default_config)

    def load_config(self, name: str, default_config: Dict[str, Any]) -> Dict[str, Any]:
        """Load configuration from file or create default.

        Args:
            name: Configuration name
            default_config: Default configuration to use if file doesn't exist

        Returns:
            Configuration dictionary
        """
        config_file = self.config_dir / f"{name}.json"

        if not config_file.exists():
            config = default_config.copy()
            self.save_config(name, config)
            return config

        try:
            with open(config_file, "r") as f:
                loaded = json.load(f)
            logger.info(f"Loaded configuration from {config_file}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading configuration from {config_file}: {e}")
            return default_config.copy()

        config = default_config.copy()
        for key, value in loaded.items():
            if key not in default_config:
                logger.warning(f"Ignoring unknown key '{key}' in {config_file}")
                continue
            config[key] = value
        return config

    def save_config(self, name: str, config: Dict[str, Any]) -> bool:
        """Save configuration to file.

        Returns:
            True if saved successfully, False otherwise
        """
        config_file = self.config_dir / f"{name}.json"

        try:
            with open(config_file, "w") as f:
                json.dump(config, f, indent=2)
            logger.info(f"Saved configuration to {config_file}")
            return True
        except OSError as e:
            logger.error(f"Error saving configuration to {config_file}: {e}")
            return False

    def get_config(self, name: str) -> Dict[str, Any]:
        """Get configuration by name."""
        return self.configs.get(name, {}).copy()

    def update_config(self, name: str, updates: Dict[str, Any]) -> bool:
        """Validate, apply and save updates to a configuration.

        Raises:
            ValueError: If an updated value is invalid
        """
        if name not in self.configs:
            logger.error(f"Unknown configuration: {name}")
            return False

        candidate = {**self.configs[name], **updates}
        # Builds the dataclass so bad values fail here rather than at use
        self._build(name, candidate)
        self.configs[name] = candidate
        return self.save_config(name, self.configs[name])

    def reset_config(self, name: str) -> bool:
        """Reset configuration to default."""
        if name not in self.default_configs:
            logger.error(f"Unknown configuration: {name}")
            return False

        self.configs[name] = self.default_configs[name].copy()
        return self.save_config(name, self.configs[name])

    def _build(self, name: str, values: Dict[str, Any]):
        cls = CONFIG_TYPES[name]
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})

    def audio_config(self, **overrides) -> AudioConfig:
        return self._build("audio", {**self.configs["audio"], **overrides})

    def detection_config(self, **overrides) -> DetectionConfig:
        return self._build("detection", {**self.configs["detection"], **overrides})

    def judgment_config(self, **overrides) -> JudgmentConfig:
        return self._build("judgment", {**self.configs["judgment"], **overrides})

    def session_config(self, **overrides) -> SessionConfig:
        return self._build("session", {**self.configs["session"], **overrides})


def _to_json_dict(config) -> Dict[str, Any]:
    values = asdict(config)
    return {k: list(v) if isinstance(v, tuple) else v for k, v in values.items()}
