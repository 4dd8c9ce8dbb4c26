"""
Audio package
Spectrum analysis, decoding and waveform peaks for the visualizations
"""

from .analyser import FrequencyAnalyser, blackman_window
from .decoder import DecodedAudio, decode_audio, segment_to_array
from .signal import SignalSourceAdapter
from .waveform import reduce_peaks, played_bar_count, split_played, render_bars

__all__ = [
    'FrequencyAnalyser',
    'blackman_window',
    'DecodedAudio',
    'decode_audio',
    'segment_to_array',
    'SignalSourceAdapter',
    'reduce_peaks',
    'played_bar_count',
    'split_played',
    'render_bars',
]
