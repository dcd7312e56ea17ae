"""Event system for Crescendo components."""

from typing import Dict, List, Callable, Any
from enum import Enum, auto

from ..logger import get_logger

logger = get_logger(__name__)


class JudgmentEventType(Enum):
    """Event types emitted by a practice session."""

    ESTIMATE = auto()
    NOTE_OPENED = auto()
    NOTE_JUDGED = auto()
    SESSION_ENDED = auto()


class EventEmitter:
    """Event emitter for Crescendo components."""

    def __init__(self):
        """Initialize the event emitter."""
        self._listeners: Dict[Any, List[Callable]] = {}

    def on(self, event_type: Any, callback: Callable) -> None:
        """Register a callback for an event type.

        Args:
            event_type: Event type to listen for
            callback: Function to call when the event occurs
        """
        if event_type not in self._listeners:
            self._listeners[event_type] = []

        if callback not in self._listeners[event_type]:
            self._listeners[event_type].append(callback)
            logger.debug(f"Added listener for event {event_type}")

    def off(self, event_type: Any, callback: Callable) -> None:
        """Remove a previously registered callback."""
        listeners = self._listeners.get(event_type, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event_type: Any, *args, **kwargs) -> None:
        """Emit an event.

        Listener errors are logged and do not reach the emitter.
        """
        if event_type not in self._listeners:
            return

        for callback in list(self._listeners[event_type]):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_type}: {e}")

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners = {}
        logger.debug("Cleared all event listeners")


class JudgmentEvents:
    """Typed facade over EventEmitter for the rendering and reporting collaborators."""

    def __init__(self):
        self._emitter = EventEmitter()

    def on_estimate(self, callback: Callable) -> None:
        """Register callback(estimate, note_pitch) called once per detection tick."""
        self._emitter.on(JudgmentEventType.ESTIMATE, callback)

    def on_note_opened(self, callback: Callable) -> None:
        """Register callback(target_note) called when a judgment window opens."""
        self._emitter.on(JudgmentEventType.NOTE_OPENED, callback)

    def on_note_judged(self, callback: Callable) -> None:
        """Register callback(record) called with each NoteOutcomeRecord."""
        self._emitter.on(JudgmentEventType.NOTE_JUDGED, callback)

    def on_session_ended(self, callback: Callable) -> None:
        """Register callback(report) called with the final SessionReport."""
        self._emitter.on(JudgmentEventType.SESSION_ENDED, callback)

    def emit_estimate(self, estimate, pitch) -> None:
        self._emitter.emit(JudgmentEventType.ESTIMATE, estimate, pitch)

    def emit_note_opened(self, note) -> None:
        self._emitter.emit(JudgmentEventType.NOTE_OPENED, note)

    def emit_note_judged(self, record) -> None:
        self._emitter.emit(JudgmentEventType.NOTE_JUDGED, record)

    def emit_session_ended(self, report) -> None:
        self._emitter.emit(JudgmentEventType.SESSION_ENDED, report)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._emitter.clear()
