"""
Audio decoding to numpy arrays

pydub handles container and codec support (WAV natively, everything else
through ffmpeg); samples are converted to float32 in [-1, 1] with shape
(frames, channels).
"""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from ..core.exceptions import AudioDecodeError


@dataclass
class DecodedAudio:
    """Decoded PCM data"""
    samples: np.ndarray
    sample_rate: int
    channels: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.samples.shape[0] / float(self.sample_rate)


def guess_format(name: str) -> Optional[str]:
    """Container format from a file name or URL path suffix"""
    suffix = Path(name.split('?', 1)[0]).suffix.lower().lstrip('.')
    return suffix or None


def segment_to_array(audio: AudioSegment) -> np.ndarray:
    """Convert an AudioSegment to float32 samples shaped (frames, channels)"""
    bit_depth = audio.sample_width * 8
    samples = np.array(audio.get_array_of_samples())
    samples = samples.reshape((-1, audio.channels))
    return samples.astype(np.float32) / (2 ** (bit_depth - 1))


def decode_audio(
    source: Union[str, Path, bytes],
    format: Optional[str] = None
) -> DecodedAudio:
    """
    Decode an audio file or in-memory buffer

    Args:
        source: File path or encoded bytes
        format: Container format; guessed from the path when omitted, and
            required for formats other than WAV when decoding bytes

    Returns:
        DecodedAudio with float32 samples

    Raises:
        AudioDecodeError: If the data cannot be read or decoded
    """
    if isinstance(source, (bytes, bytearray)):
        handle = io.BytesIO(bytes(source))
        label = f"<{len(source)} bytes>"
        format = format or "wav"
    else:
        handle = str(Path(source).expanduser())
        label = handle
        format = format or guess_format(handle)

    try:
        audio = AudioSegment.from_file(handle, format=format)
    except (CouldntDecodeError, OSError, ValueError, IndexError, EOFError) as e:
        raise AudioDecodeError(
            f"Failed to decode audio {label}: {e}",
            details={'source': label, 'format': format, 'original_error': str(e)}
        )

    return DecodedAudio(
        samples=segment_to_array(audio),
        sample_rate=audio.frame_rate,
        channels=audio.channels,
    )
