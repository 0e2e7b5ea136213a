"""Wrap canonical PCM in a RIFF/WAVE container for file-based recognizers."""

import io

import numpy as np
import scipy.io.wavfile as wav

WAV_HEADER_SIZE = 44


def build_wav_bytes(
    pcm: bytes, sample_rate: int, channels: int, bits_per_sample: int
) -> bytes:
    """
    Build a 44-byte-header PCM (format tag 1) WAV file around raw 16-bit samples.

    Args:
        pcm: Interleaved signed 16-bit little-endian samples
        sample_rate: Samples per second
        channels: Number of interleaved channels
        bits_per_sample: Must be 16

    Returns:
        The complete WAV file as bytes.
    """
    if bits_per_sample != 16:
        raise ValueError(f"Only 16-bit PCM can be wrapped, got {bits_per_sample}")
    if channels < 1:
        raise ValueError(f"Invalid channel count: {channels}")

    usable = len(pcm) - (len(pcm) % (2 * channels))
    samples = np.frombuffer(pcm[:usable], dtype="<i2")
    if channels > 1:
        samples = samples.reshape(-1, channels)

    buffer = io.BytesIO()
    wav.write(buffer, sample_rate, samples)
    return buffer.getvalue()
