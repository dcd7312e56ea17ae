"""Exception types raised by Crescendo components."""


class CrescendoError(Exception):
    """Base class for all Crescendo errors."""


class AcquisitionError(CrescendoError):
    """The audio input could not be acquired (no device, permission denied, driver failure)."""


class ScheduleError(CrescendoError):
    """A target-note schedule is malformed and cannot be judged."""
