"""Audio input handling for pitch detection."""

from __future__ import annotations
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import sounddevice as sd
import soundfile as sf

from ..logger import get_logger
from ..core.errors import AcquisitionError
from ..core.interfaces import ISignalSource
from .frame import AudioFrame

logger = get_logger(__name__)


def list_input_devices() -> List[Dict[str, Any]]:
    """Return the audio devices that can record, with their PortAudio index.

    Raises:
        AcquisitionError: If PortAudio cannot enumerate devices
    """
    try:
        all_devices = sd.query_devices()
    except sd.PortAudioError as e:
        raise AcquisitionError(f"Cannot query audio devices: {e}") from e

    devices = []
    for device_id, device in enumerate(all_devices):
        if device["max_input_channels"] > 0:
            devices.append(
                {
                    "id": device_id,
                    "name": device["name"],
                    "max_input_channels": device["max_input_channels"],
                    "default_samplerate": device["default_samplerate"],
                }
            )
    return devices


class SoundDeviceInput(ISignalSource):
    """Live microphone input using the sounddevice library.

    The PortAudio callback thread writes into a ring buffer holding the last
    frame_size samples; get_frame() copies it out under a lock.
    """

    def __init__(
        self,
        device_id: Optional[int] = None,
        sample_rate: Optional[int] = None,
        frame_size: int = 4096,
        channels: int = 1,
        block_size: int = 512,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the input handler without touching the device.

        Args:
            device_id: Audio input device ID, or None for the system default
            sample_rate: Sample rate in Hz, or None for the device's native rate
            frame_size: Number of samples served per frame
            channels: Channels to open; the first one is analysed
            block_size: PortAudio block size
            time_source: Clock used to stamp frames
        """
        self._device_id = device_id
        self._requested_rate = sample_rate
        self._sample_rate = sample_rate or 0
        self._frame_size = frame_size
        self._channels = channels
        self._block_size = block_size
        self._time_source = time_source

        self._ring = np.zeros(frame_size, dtype=np.float32)
        self._lock = threading.Lock()
        self._stream: Optional[sd.InputStream] = None
        self._running = False

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def is_running(self) -> bool:
        return self._running

    def initialize(self) -> None:
        """Open and start the input stream.

        Raises:
            AcquisitionError: If no input device exists or the stream cannot be opened
        """
        if self._stream is not None:
            logger.warning("Audio input already initialized")
            return

        try:
            device = sd.query_devices(self._device_id, kind="input")
        except (sd.PortAudioError, ValueError) as e:
            raise AcquisitionError(f"No audio input device available: {e}") from e

        if not device or device.get("max_input_channels", 0) < 1:
            raise AcquisitionError("Selected audio device has no input channels")

        if self._requested_rate is None:
            self._sample_rate = int(device["default_samplerate"])

        try:
            self._stream = sd.InputStream(
                device=self._device_id,
                samplerate=self._sample_rate,
                blocksize=self._block_size,
                channels=self._channels,
                dtype="float32",
                callback=self._audio_callback,
            )
            self._stream.start()
        except sd.PortAudioError as e:
            self._stream = None
            raise AcquisitionError(f"Could not open audio input: {e}") from e

        self._running = True
        logger.info(
            f"Audio input started: device={device['name']}, rate={self._sample_rate}Hz, "
            f"frame_size={self._frame_size}"
        )

    def _audio_callback(
        self,
        indata: np.ndarray,
        _frames: int,
        _time_info: dict,
        status: sd.CallbackFlags,
    ) -> None:
        """Callback for processing audio data from the input stream.

        Note:
            This is called from a separate audio thread, so it should be fast
            and avoid any blocking operations to prevent audio glitches.
        """
        if status:
            logger.warning(f"Audio callback status: {status}")

        # Extract mono audio data (take first channel if multi-channel)
        block = indata[:, 0] if indata.ndim > 1 else indata
        with self._lock:
            self._write(block)

    def _write(self, block: np.ndarray) -> None:
        n = block.shape[0]
        if n >= self._frame_size:
            self._ring[:] = block[-self._frame_size:]
        else:
            self._ring = np.roll(self._ring, -n)
            self._ring[-n:] = block

    def get_frame(self) -> AudioFrame:
        with self._lock:
            samples = self._ring.copy()
        return AudioFrame(samples, self._sample_rate, timestamp=self._time_source())

    def suspend(self) -> None:
        if self._stream is not None and self._running:
            self._stream.stop()
            self._running = False
            logger.info("Audio input suspended")

    def resume(self) -> None:
        """Restart a suspended stream.

        Raises:
            AcquisitionError: If the device can no longer be started
        """
        if self._stream is not None and not self._running:
            try:
                self._stream.start()
            except sd.PortAudioError as e:
                raise AcquisitionError(f"Could not resume audio input: {e}") from e
            self._running = True
            logger.info("Audio input resumed")

    def close(self) -> None:
        """Stop capturing audio and release the device."""
        if self._stream is None:
            return

        try:
            self._stream.stop()
            self._stream.close()
        except sd.PortAudioError as e:
            logger.error(f"Error stopping audio input: {e}")
        finally:
            self._stream = None
            self._running = False
        logger.info("Audio input stopped")


class WavFileInput(ISignalSource):
    """Serves frames from a recorded audio file, for offline judging."""

    def __init__(self, file_path: str, frame_size: int = 4096, gain: float = 1.0):
        self._file_path = file_path
        self._frame_size = frame_size
        self._gain = gain
        self._data: Optional[np.ndarray] = None
        self._sample_rate = 0
        self._position = 0  # Index one past the last sample of the window
        self._suspended = False

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def duration(self) -> float:
        if self._data is None or not self._sample_rate:
            return 0.0
        return self._data.shape[0] / float(self._sample_rate)

    def initialize(self) -> None:
        try:
            data, rate = sf.read(self._file_path, dtype="float32", always_2d=True)
        except (RuntimeError, OSError) as e:
            raise AcquisitionError(f"Could not read {self._file_path}: {e}") from e

        # Downmix to mono
        self._data = data.mean(axis=1) * self._gain
        self._sample_rate = int(rate)
        self._position = 0
        logger.info(
            f"Loaded {self._file_path}: {self.duration:.2f}s at {self._sample_rate}Hz"
        )

    def seek(self, seconds: float) -> None:
        """Place the end of the next frame at the given time in the file."""
        self._position = max(0, int(round(seconds * self._sample_rate)))

    def get_frame(self) -> AudioFrame:
        if self._data is None:
            raise AcquisitionError("WavFileInput.get_frame() called before initialize()")

        end = min(self._position, self._data.shape[0])
        start = max(0, end - self._frame_size)
        window = np.zeros(self._frame_size, dtype=np.float32)
        if not self._suspended and end > start:
            window[-(end - start):] = self._data[start:end]
        return AudioFrame(window, self._sample_rate, timestamp=self._position / float(self._sample_rate))

    def suspend(self) -> None:
        self._suspended = True

    def resume(self) -> None:
        self._suspended = False

    def close(self) -> None:
        self._data = None
