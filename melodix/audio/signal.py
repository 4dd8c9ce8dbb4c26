"""
Signal source adapter

Bridges the playback pipeline and the visualizations:

- the host pushes decoded PCM blocks with feed() while a track plays and
  reads spectrum bins with get_frequency_data() once per rendered frame
- when a new track is selected, load_track() fetches and decodes it off the
  event loop and reduces it to waveform peaks for the seek bar

Decoding runs on a dedicated single-worker thread pool, one track at a time.
Failures to fetch or decode a track are logged and produce an empty peak
list; the seek bar then simply has no waveform.
"""

import asyncio
import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Union

import aiohttp
import numpy as np

from .analyser import FrequencyAnalyser
from .decoder import decode_audio, guess_format
from .waveform import as_float_samples, reduce_peaks
from ..core.exceptions import AudioDecodeError
from ..utils.helpers import is_remote_resource
from ..utils.logger import get_logger, log_performance


Resource = Union[str, Path]


class SignalSourceAdapter:
    """Frequency data for the active playback and waveform peaks per track"""

    def __init__(
        self,
        fft_size: int = 2048,
        smoothing: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
        waveform_resolution: int = 80,
        request_timeout: float = 30.0,
        user_agent: Optional[str] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """
        Initialize the adapter

        Args:
            fft_size: Analysis window length (power of two)
            smoothing: Spectrum time smoothing constant
            min_decibels: Level shown as an empty bar
            max_decibels: Level shown as a full bar
            waveform_resolution: Default number of waveform peaks
            request_timeout: Seconds allowed to download a remote track
            user_agent: User-Agent header for remote downloads
            executor: Decode executor; a private single-worker pool is
                created (and shut down by close()) when omitted
        """
        self.analyser = FrequencyAnalyser(fft_size, smoothing, min_decibels, max_decibels)
        self.waveform_resolution = waveform_resolution
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)
        self.user_agent = user_agent
        self.logger = get_logger(__name__)

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="melodix-decode")
        self._state_lock = threading.Lock()
        self._playing = False
        self._current_resource: Optional[str] = None
        self._current_peaks: Optional[List[float]] = None

    @classmethod
    def from_settings(cls, settings) -> 'SignalSourceAdapter':
        visualizer = settings.visualizer
        return cls(
            fft_size=visualizer.fft_size,
            smoothing=visualizer.smoothing,
            min_decibels=visualizer.min_decibels,
            max_decibels=visualizer.max_decibels,
            waveform_resolution=visualizer.waveform_resolution,
            request_timeout=settings.network.request_timeout,
            user_agent=settings.network.user_agent,
        )

    # ------------------------------------------------------------------
    # Live spectrum
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        with self._state_lock:
            return self._playing

    @property
    def frequency_bin_count(self) -> int:
        return self.analyser.frequency_bin_count

    def set_playing(self, playing: bool) -> None:
        """
        Mark playback as running or stopped

        Stopping replaces the analysis window with silence, so the bars fall
        back to zero at the rate set by the smoothing constant.
        """
        with self._state_lock:
            self._playing = bool(playing)
        if not playing:
            self.analyser.clear_input()

    def feed(self, samples) -> None:
        """
        Push a block of decoded PCM samples

        Args:
            samples: Mono samples or a (frames, channels) array, float or
                integer PCM; multi-channel input is down-mixed
        """
        if not self.is_playing:
            return
        data = as_float_samples(samples)
        if data.ndim == 2:
            data = data.mean(axis=1) if data.shape[1] else np.zeros(data.shape[0])
        elif data.ndim != 1:
            raise ValueError(f"Expected mono or (frames, channels) samples, got shape {data.shape}")
        self.analyser.write(data)

    def get_frequency_data(self) -> np.ndarray:
        """
        Current spectrum as bytes (0-255)

        Returns the same buffer on every call; copy it to keep a frame.
        """
        return self.analyser.get_byte_frequency_data()

    # ------------------------------------------------------------------
    # Waveform
    # ------------------------------------------------------------------

    async def _fetch(self, url: str) -> bytes:
        headers = {'User-Agent': self.user_agent} if self.user_agent else None
        async with aiohttp.ClientSession(timeout=self.timeout, headers=headers) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    raise AudioDecodeError(
                        f"Failed to fetch {url}: HTTP {response.status}",
                        details={'url': url, 'status': response.status}
                    )
                return await response.read()

    @staticmethod
    @log_performance
    def _decode_and_reduce(source, format: Optional[str], resolution: int) -> List[float]:
        decoded = decode_audio(source, format=format)
        return reduce_peaks(decoded.samples, resolution)

    async def get_waveform_data(self, resource: Resource, resolution: Optional[int] = None) -> List[float]:
        """
        Decode a track and reduce it to waveform peaks

        Args:
            resource: Local path or http(s) URL
            resolution: Number of peaks (defaults to waveform_resolution)

        Returns:
            Peaks in [0, 1], or [] when the track cannot be fetched or decoded

        Raises:
            ValueError: If resolution is less than 1
        """
        resolution = self.waveform_resolution if resolution is None else resolution
        if resolution < 1:
            raise ValueError(f"resolution must be at least 1, got {resolution}")

        resource = str(resource)
        format = guess_format(resource)
        try:
            if is_remote_resource(resource):
                source = await self._fetch(resource)
            else:
                source = resource

            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                self._executor,
                functools.partial(self._decode_and_reduce, source, format, resolution)
            )
        except (AudioDecodeError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"No waveform for {resource}: {e}")
            return []

    async def load_track(self, resource: Resource, resolution: Optional[int] = None) -> List[float]:
        """
        Select a track and compute its waveform

        Only the peaks of the current selection are cached; selecting another
        track while this one decodes drops this result.
        """
        resource = str(resource)
        with self._state_lock:
            self._current_resource = resource
            self._current_peaks = None

        peaks = await self.get_waveform_data(resource, resolution)

        with self._state_lock:
            if self._current_resource == resource:
                self._current_peaks = peaks
        return peaks

    def cached_peaks(self, resource: Optional[Resource] = None) -> Optional[List[float]]:
        """Peaks of the current track, if computed (and if resource is the current track)"""
        with self._state_lock:
            if resource is not None and str(resource) != self._current_resource:
                return None
            return list(self._current_peaks) if self._current_peaks is not None else None

    def close(self) -> None:
        """Stop playback analysis and release the decode thread"""
        self.set_playing(False)
        if self._owns_executor:
            self._executor.shutdown(wait=False)
