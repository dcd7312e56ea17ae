"""Factory for creating Crescendo components."""

from typing import Dict, Optional, Sequence, Type

from ..logger import get_logger
from ..audio.audio_input import SoundDeviceInput, WavFileInput
from ..detection.estimator import PitchEstimator
from ..judgment.clock import SessionClock
from ..judgment.engine import JudgmentEngine
from ..note_types import TargetNote
from ..services.practice_session import PracticeSession
from .config import ConfigManager
from .events import JudgmentEvents
from .interfaces import ISignalSource

logger = get_logger(__name__)


class ComponentFactory:
    """Factory for creating Crescendo components from stored configuration."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """Initialize the component factory.

        Args:
            config_manager: Configuration manager, or None to create a default one
        """
        self.config_manager = config_manager or ConfigManager()

        # Register default component implementations
        self.signal_source_classes: Dict[str, Type[ISignalSource]] = {
            "default": SoundDeviceInput,
            "file": WavFileInput,
        }

    def create_signal_source(
        self, implementation: str = "default", **kwargs
    ) -> ISignalSource:
        """Create a signal source.

        Args:
            implementation: Name of the implementation to use
            **kwargs: Parameters overriding the audio configuration

        Returns:
            Signal source instance

        Raises:
            ValueError: If the implementation is not registered
        """
        if implementation not in self.signal_source_classes:
            raise ValueError(f"Unknown signal source implementation: {implementation}")

        audio = self.config_manager.audio_config()
        if implementation == "file":
            params = {"frame_size": audio.frame_size}
        else:
            params = {
                "device_id": audio.device_id,
                "sample_rate": audio.sample_rate,
                "frame_size": audio.frame_size,
                "channels": audio.channels,
            }
        params.update(kwargs)

        cls = self.signal_source_classes[implementation]
        instance = cls(**params)

        logger.info(f"Created signal source: {implementation}")
        return instance

    def create_estimator(self, **overrides) -> PitchEstimator:
        config = self.config_manager.detection_config(**overrides)
        logger.debug(f"Creating pitch estimator with methods {config.methods}")
        return PitchEstimator(config)

    def create_engine(
        self,
        schedule: Sequence[TargetNote],
        events: Optional[JudgmentEvents] = None,
        **overrides,
    ) -> JudgmentEngine:
        """Create a judgment engine for a schedule.

        Raises:
            ScheduleError: If the schedule is malformed
        """
        return JudgmentEngine(schedule, self.config_manager.judgment_config(**overrides), events)

    def create_session(
        self,
        schedule: Sequence[TargetNote],
        source: Optional[ISignalSource] = None,
        events: Optional[JudgmentEvents] = None,
        clock: Optional[SessionClock] = None,
        **session_overrides,
    ) -> PracticeSession:
        """Create a practice session with every collaborator built from configuration.

        Args:
            schedule: Target notes to judge
            source: Signal source, or None for the configured live input
            events: Event hub shared by the engine and the session
            clock: Session clock, or None for wall-clock time
            **session_overrides: Overrides for the session configuration
        """
        events = events or JudgmentEvents()
        session = PracticeSession(
            source=source or self.create_signal_source(),
            estimator=self.create_estimator(),
            engine=self.create_engine(schedule, events=events),
            events=events,
            clock=clock,
            audio_config=self.config_manager.audio_config(),
            session_config=self.config_manager.session_config(**session_overrides),
        )
        logger.info(f"Created practice session for {len(schedule)} notes")
        return session
