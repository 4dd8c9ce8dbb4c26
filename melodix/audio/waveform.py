"""
Waveform peak reduction

Turns a decoded PCM buffer into a fixed number of bars for the seek-bar
waveform. The reduction is deterministic, so the played fraction of the
bar list can be redrawn on every position update without recomputing it.
"""

from typing import List, Sequence, Tuple

import numpy as np


def as_float_samples(samples) -> np.ndarray:
    """
    Convert PCM samples to float64 in the [-1, 1] range

    Integer input is scaled by its type's full range, float input is taken
    as is. Non-finite values become 0.
    """
    data = np.asarray(samples)
    if np.issubdtype(data.dtype, np.integer):
        info = np.iinfo(data.dtype)
        scale = float(-info.min) if info.min < 0 else float(info.max)
        data = data.astype(np.float64) / scale
    else:
        data = data.astype(np.float64, copy=False)
    return np.nan_to_num(data, nan=0.0, posinf=1.0, neginf=-1.0)


def _magnitudes(samples) -> np.ndarray:
    data = as_float_samples(samples)
    if data.ndim == 2:
        # (frames, channels): loudest channel per frame
        return np.abs(data).max(axis=1) if data.shape[1] else np.zeros(data.shape[0])
    if data.ndim > 2:
        raise ValueError(f"Expected mono or (frames, channels) samples, got shape {data.shape}")
    return np.abs(data.reshape(-1))


def reduce_peaks(samples, resolution: int, normalize: bool = True) -> List[float]:
    """
    Reduce PCM samples to one peak per window

    Args:
        samples: Mono samples or a (frames, channels) array, float or integer PCM
        resolution: Number of peaks to produce
        normalize: Rescale so the loudest peak is 1.0

    Returns:
        Exactly `resolution` values in [0.0, 1.0]

    Raises:
        ValueError: If resolution is less than 1 or samples have more than two dimensions

    Windows are the `resolution` equal-width slices of the buffer; when the
    buffer is shorter than the resolution each window takes the sample it
    starts on, and an empty buffer yields all zeros.
    """
    if resolution < 1:
        raise ValueError(f"resolution must be at least 1, got {resolution}")

    magnitudes = _magnitudes(samples)
    count = magnitudes.shape[0]
    if count == 0:
        return [0.0] * resolution

    starts = (np.arange(resolution, dtype=np.int64) * count) // resolution
    if count >= resolution:
        peaks = np.maximum.reduceat(magnitudes, starts)
    else:
        peaks = magnitudes[starts]

    if normalize:
        loudest = peaks.max()
        if loudest > 0:
            peaks = peaks / loudest

    return np.clip(peaks, 0.0, 1.0).tolist()


def played_bar_count(resolution: int, position: float, duration: float) -> int:
    """Number of bars covered by the playback position"""
    if resolution <= 0 or duration <= 0:
        return 0
    fraction = min(1.0, max(0.0, position / duration))
    return int(fraction * resolution)


def split_played(peaks: Sequence[float], fraction: float) -> Tuple[List[float], List[float]]:
    """Split peaks into the played and the remaining part"""
    cut = played_bar_count(len(peaks), fraction, 1.0)
    return list(peaks[:cut]), list(peaks[cut:])


def render_bars(peaks: Sequence[float], height: int = 8) -> List[str]:
    """
    Render peaks as rows of text, top row first

    Used by the command line to show a waveform in the terminal.
    """
    if height < 1:
        raise ValueError("height must be at least 1")
    levels = [int(round(value * height)) for value in peaks]
    rows = []
    for row in range(height, 0, -1):
        rows.append(''.join('█' if level >= row else ' ' for level in levels))
    return rows
