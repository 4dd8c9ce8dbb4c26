"""
Real-time frequency analysis

FrequencyAnalyser follows the behaviour of the Web Audio AnalyserNode so the
spectrum bars look the way listeners expect from browser players:

1. The last fft_size samples are multiplied by a Blackman window
2. A real FFT gives fft_size / 2 bins, scaled by 1 / fft_size
3. Each bin is smoothed over time: tau * previous + (1 - tau) * current
4. Magnitudes are converted to decibels and mapped linearly from
   [min_decibels, max_decibels] onto [0, 255]

Exact numeric agreement with a browser implementation is not a goal.
All buffers are allocated once; get_byte_frequency_data returns the same
array on every call.
"""

import threading

import numpy as np


MIN_FFT_SIZE = 32
MAX_FFT_SIZE = 32768


def blackman_window(size: int) -> np.ndarray:
    """Blackman window with alpha = 0.16 over `size` points (periodic form)"""
    alpha = 0.16
    a0 = 0.5 * (1 - alpha)
    a1 = 0.5
    a2 = 0.5 * alpha
    n = np.arange(size, dtype=np.float64)
    return a0 - a1 * np.cos(2 * np.pi * n / size) + a2 * np.cos(4 * np.pi * n / size)


class FrequencyAnalyser:
    """
    Smoothed magnitude spectrum of the most recent samples

    write() and the get_* methods share one lock, so a playback thread can
    push samples while a render thread reads the bins.
    """

    def __init__(
        self,
        fft_size: int = 2048,
        smoothing: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0
    ):
        """
        Initialize the analyser

        Args:
            fft_size: Window length; a power of two between 32 and 32768
            smoothing: Time smoothing constant in [0, 1]
            min_decibels: Level mapped to byte value 0
            max_decibels: Level mapped to byte value 255

        Raises:
            ValueError: If a parameter is out of range
        """
        if fft_size < MIN_FFT_SIZE or fft_size > MAX_FFT_SIZE or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two between {MIN_FFT_SIZE} and {MAX_FFT_SIZE}")
        if not 0.0 <= smoothing <= 1.0:
            raise ValueError("smoothing must be between 0 and 1")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be lower than max_decibels")

        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self.lock = threading.Lock()

        self._window = blackman_window(fft_size)
        self._time_domain = np.zeros(fft_size, dtype=np.float64)
        self._windowed = np.zeros(fft_size, dtype=np.float64)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)
        self._decibels = np.zeros(self.frequency_bin_count, dtype=np.float64)
        self._scaled = np.zeros(self.frequency_bin_count, dtype=np.float64)
        self._bytes = np.zeros(self.frequency_bin_count, dtype=np.uint8)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def write(self, samples: np.ndarray) -> None:
        """Append mono float samples to the analysis window"""
        block = np.asarray(samples, dtype=np.float64).reshape(-1)
        size = block.shape[0]
        if size == 0:
            return
        with self.lock:
            if size >= self.fft_size:
                self._time_domain[:] = block[-self.fft_size:]
            else:
                self._time_domain[:-size] = self._time_domain[size:]
                self._time_domain[-size:] = block

    def clear_input(self) -> None:
        """Replace the analysis window with silence"""
        with self.lock:
            self._time_domain.fill(0.0)

    def reset(self) -> None:
        """Forget the input and the smoothing history"""
        with self.lock:
            self._time_domain.fill(0.0)
            self._smoothed.fill(0.0)
            self._bytes.fill(0)

    def _analyse(self) -> None:
        np.multiply(self._time_domain, self._window, out=self._windowed)
        spectrum = np.fft.rfft(self._windowed)[:self.frequency_bin_count]
        magnitudes = np.abs(spectrum) / self.fft_size

        self._smoothed *= self.smoothing
        self._smoothed += (1.0 - self.smoothing) * magnitudes
        # Silence maps below min_decibels and clips to zero
        np.maximum(self._smoothed, 1e-30, out=self._decibels)
        np.log10(self._decibels, out=self._decibels)
        self._decibels *= 20.0

    def get_float_frequency_data(self) -> np.ndarray:
        """Analyse and return a copy of the bin levels in decibels"""
        with self.lock:
            self._analyse()
            return self._decibels.copy()

    def get_byte_frequency_data(self) -> np.ndarray:
        """
        Analyse and return the bins as bytes

        Returns:
            The analyser's own uint8 buffer of frequency_bin_count values;
            it is overwritten by the next call
        """
        with self.lock:
            self._analyse()
            scale = 255.0 / (self.max_decibels - self.min_decibels)
            np.subtract(self._decibels, self.min_decibels, out=self._scaled)
            self._scaled *= scale
            np.floor(self._scaled, out=self._scaled)
            np.clip(self._scaled, 0, 255, out=self._scaled)
            self._bytes[:] = self._scaled
            return self._bytes

    def get_time_domain_data(self) -> np.ndarray:
        """Copy of the current analysis window"""
        with self.lock:
            return self._time_domain.copy()
