from .recorder import (
    CANONICAL_BITS_PER_SAMPLE,
    CANONICAL_CHANNELS,
    CANONICAL_SAMPLE_RATE,
    AudioDevice,
    AudioRecorder,
    StreamConverter,
)
from .wav import WAV_HEADER_SIZE, build_wav_bytes

__all__ = [
    "AudioDevice",
    "AudioRecorder",
    "StreamConverter",
    "CANONICAL_SAMPLE_RATE",
    "CANONICAL_CHANNELS",
    "CANONICAL_BITS_PER_SAMPLE",
    "WAV_HEADER_SIZE",
    "build_wav_bytes",
]
