import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np
import sounddevice as sd

from ...utils.logger import get_logger
from ..errors import SetupError

logger = get_logger(__name__)

CANONICAL_SAMPLE_RATE = 16000
CANONICAL_CHANNELS = 1
CANONICAL_BITS_PER_SAMPLE = 16


@dataclass
class AudioDevice:
    name: str
    index: int
    channels: int
    default_sample_rate: float


class StreamConverter:
    """
    Converts native input blocks to canonical PCM (16 kHz, mono, int16 LE).

    Resampling is linear interpolation with the fractional read position and
    the last input sample carried across blocks, so consecutive blocks join
    without gaps.
    """

    def __init__(
        self,
        input_rate: float,
        input_channels: int,
        output_rate: int = CANONICAL_SAMPLE_RATE,
    ):
        if not input_rate or input_rate <= 0:
            raise SetupError(f"Invalid input sample rate: {input_rate}")
        if input_channels <= 0:
            raise SetupError(f"Invalid input channel count: {input_channels}")
        if output_rate <= 0:
            raise SetupError(f"Invalid output sample rate: {output_rate}")

        self.input_rate = float(input_rate)
        self.input_channels = input_channels
        self.output_rate = output_rate
        self._step = self.input_rate / float(output_rate)
        self._position = 0.0
        self._last: Optional[float] = None

    def reset(self) -> None:
        self._position = 0.0
        self._last = None

    def convert(self, block: np.ndarray) -> bytes:
        mono = self._to_mono_float(block)
        if self._last is not None:
            samples = np.concatenate(([self._last], mono))
        else:
            samples = mono

        n = samples.shape[0]
        if n == 0:
            return b""

        last_index = n - 1
        if self._position > last_index:
            count = 0
        else:
            count = int(np.floor((last_index - self._position) / self._step)) + 1

        if count > 0:
            positions = self._position + self._step * np.arange(count)
            resampled = np.interp(positions, np.arange(n), samples)
            next_position = positions[-1] + self._step
        else:
            resampled = np.empty(0)
            next_position = self._position

        self._position = next_position - last_index
        self._last = float(samples[-1])

        pcm = np.round(np.clip(resampled, -1.0, 1.0) * 32767.0).astype("<i2")
        return pcm.tobytes()

    @staticmethod
    def _to_mono_float(block: np.ndarray) -> np.ndarray:
        data = np.asarray(block)
        if data.dtype == np.int16:
            data = data.astype(np.float64) / 32768.0
        else:
            data = data.astype(np.float64)

        if data.ndim > 1:
            data = data.mean(axis=1)
        return data.reshape(-1)


class AudioRecorder:
    """
    Captures the input device at its native format and accumulates canonical PCM.

    The stream callback runs on the audio thread and only converts and appends.
    """

    def __init__(
        self,
        device: Optional[str] = None,
        on_audio_level: Optional[Callable[[float], None]] = None,
    ):
        self.device = device
        self.on_audio_level = on_audio_level
        self.sample_rate = CANONICAL_SAMPLE_RATE
        self.channels = CANONICAL_CHANNELS
        self.bits_per_sample = CANONICAL_BITS_PER_SAMPLE

        self._stream: Optional[sd.InputStream] = None
        self._converter: Optional[StreamConverter] = None
        self._buffer = bytearray()
        self._buffer_lock = threading.Lock()
        self._is_recording = False

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    def start(self) -> None:
        """
        Open the input stream and begin accumulating from an empty buffer.

        Raises:
            SetupError: If the device, its format, or the converter cannot be set up.
        """
        if self._is_recording:
            return

        with self._buffer_lock:
            self._buffer = bytearray()

        device_index = self._get_device_index()
        try:
            info = sd.query_devices(device_index, "input")
            native_rate = float(info["default_samplerate"])
            native_channels = max(1, min(int(info["max_input_channels"]), 2))
        except (sd.PortAudioError, ValueError, KeyError, TypeError) as e:
            raise SetupError(f"Cannot query input device: {e}") from e

        converter = StreamConverter(native_rate, native_channels)
        logger.info(
            f"Input format: {native_rate:.0f}Hz, {native_channels}ch -> "
            f"{CANONICAL_SAMPLE_RATE}Hz, {CANONICAL_CHANNELS}ch, int16"
        )

        stream = None
        try:
            stream = sd.InputStream(
                samplerate=native_rate,
                channels=native_channels,
                dtype="float32",
                device=device_index,
                callback=self._audio_callback,
            )
            self._converter = converter
            self._is_recording = True
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._is_recording = False
            self._converter = None
            if stream is not None:
                stream.close()
            with self._buffer_lock:
                self._buffer = bytearray()
            raise SetupError(f"Audio device error: {e}") from e

        self._stream = stream

    def stop(self) -> Optional[bytes]:
        """Stop capture and return the finalized canonical PCM, or None if idle."""
        if not self._is_recording:
            return None

        self._is_recording = False

        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

        self._converter = None

        with self._buffer_lock:
            data = bytes(self._buffer)
            self._buffer = bytearray()

        logger.info(f"Collected audio data: {len(data)} bytes")
        return data

    def _audio_callback(self, indata: np.ndarray, frames: int, time, status) -> None:
        if not self._is_recording or self._converter is None:
            return

        converted = self._converter.convert(indata)
        with self._buffer_lock:
            self._buffer.extend(converted)

        if self.on_audio_level is not None:
            level = float(np.abs(indata).mean())
            self.on_audio_level(min(1.0, level * 10))

    def _get_device_index(self) -> Optional[int]:
        if self.device is None:
            return None

        for device in self.list_devices():
            if device.name == self.device:
                return device.index

        return None

    @staticmethod
    def list_devices() -> List[AudioDevice]:
        devices = []

        for i, device in enumerate(sd.query_devices()):
            if device["max_input_channels"] > 0:
                devices.append(
                    AudioDevice(
                        name=device["name"],
                        index=i,
                        channels=device["max_input_channels"],
                        default_sample_rate=device["default_samplerate"],
                    )
                )

        return devices
