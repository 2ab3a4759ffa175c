"""Telephony audio conversions.

G.711 mu-law <-> 16-bit linear PCM, canonical WAV framing and a small
linear-interpolation resampler. Everything here is pure and stateless.
All PCM is 16-bit signed little-endian.

Buffer conversions go through numpy lookup tables built once from the
scalar reference curve, so they stay cheap on the event loop.
"""
import struct
from typing import NamedTuple, Tuple

import numpy as np

from receptionist.core.exceptions import AudioFormatError

ULAW_BIAS = 0x84
ULAW_CLIP = 32635
WAV_HEADER_SIZE = 44

# Exponent bucket thresholds for the biased magnitude
_EXPONENT_THRESHOLDS = [256, 512, 1024, 2048, 4096, 8192, 16384, 32768]


class WavFormat(NamedTuple):
    """Format fields read from a WAV `fmt ` chunk."""

    audio_format: int
    channels: int
    sample_rate: int
    bits_per_sample: int


def ulaw_to_linear(ulaw_byte: int) -> int:
    """Decode a single mu-law byte to a 16-bit linear sample."""
    value = ~ulaw_byte & 0xFF
    sign = value & 0x80
    exponent = (value >> 4) & 0x07
    mantissa = value & 0x0F
    magnitude = (((mantissa << 3) + ULAW_BIAS) << exponent) - ULAW_BIAS
    sample = -magnitude if sign else magnitude
    return max(-32768, min(32767, sample))


def linear_to_ulaw(sample: int) -> int:
    """Encode a 16-bit linear sample to a mu-law byte."""
    if sample < 0:
        sign = 0x80
        sample = -sample
    else:
        sign = 0x00

    if sample > ULAW_CLIP:
        sample = ULAW_CLIP
    sample += ULAW_BIAS

    exponent = 7
    while exponent > 0 and sample < _EXPONENT_THRESHOLDS[exponent - 1]:
        exponent -= 1

    mantissa = (sample >> (exponent + 3)) & 0x0F
    return ~(sign | (exponent << 4) | mantissa) & 0xFF


_DECODE_TABLE = np.array([ulaw_to_linear(b) for b in range(256)], dtype="<i2")
# Indexed by sample + 32768
_ENCODE_TABLE = np.array(
    [linear_to_ulaw(s) for s in range(-32768, 32768)], dtype=np.uint8
)


def mulaw_to_pcm16(data: bytes) -> bytes:
    """Convert a mu-law buffer to 16-bit linear PCM."""
    if not data:
        return b""
    return _DECODE_TABLE[np.frombuffer(data, dtype=np.uint8)].tobytes()


def pcm16_to_mulaw(data: bytes) -> bytes:
    """Convert 16-bit linear PCM to mu-law. A trailing odd byte is dropped."""
    count = len(data) // 2
    if count == 0:
        return b""
    samples = np.frombuffer(data, dtype="<i2", count=count)
    return _ENCODE_TABLE[samples.astype(np.int32) + 32768].tobytes()


def wrap_wav(
    pcm: bytes,
    sample_rate: int = 8000,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """Prepend a canonical 44-byte PCM WAV header to a raw payload."""
    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + len(pcm),
        b"WAVE",
        b"fmt ",
        16,
        1,  # PCM
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        len(pcm),
    )
    return header + pcm


def is_wav(data: bytes) -> bool:
    """Check for RIFF/WAVE magic bytes."""
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def unwrap_wav(data: bytes) -> Tuple[bytes, WavFormat]:
    """Extract the `data` chunk payload and format from a WAV file.

    Chunks other than `fmt ` and `data` are skipped, so headers longer than
    the canonical 44 bytes are accepted.

    Raises:
        AudioFormatError: if the input is not a RIFF/WAVE file or lacks the
            required chunks.
    """
    if not is_wav(data):
        raise AudioFormatError("Not a RIFF/WAVE payload")

    wav_format = None
    offset = 12
    while offset + 8 <= len(data):
        chunk_id, chunk_size = struct.unpack_from("<4sI", data, offset)
        body_start = offset + 8
        if chunk_id == b"fmt ":
            if chunk_size < 16:
                raise AudioFormatError("Truncated fmt chunk")
            wav_format = WavFormat(*struct.unpack_from("<HHI6xH", data, body_start))
        elif chunk_id == b"data":
            if wav_format is None:
                raise AudioFormatError("data chunk before fmt chunk")
            return data[body_start : body_start + chunk_size], wav_format
        # Chunks are word aligned
        offset = body_start + chunk_size + (chunk_size & 1)

    raise AudioFormatError("WAV payload has no data chunk")


def resample_pcm16(pcm: bytes, from_rate: int, to_rate: int) -> bytes:
    """Resample mono 16-bit PCM with linear interpolation."""
    if from_rate == to_rate or len(pcm) < 2:
        return pcm

    count = len(pcm) // 2
    samples = np.frombuffer(pcm, dtype="<i2", count=count).astype(np.float64)
    out_count = max(1, count * to_rate // from_rate)

    # Positions past the last input sample hold its value
    positions = np.arange(out_count) * (from_rate / to_rate)
    out = np.interp(positions, np.arange(count), samples)
    return np.clip(np.rint(out), -32768, 32767).astype("<i2").tobytes()
