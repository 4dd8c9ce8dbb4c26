"""Test waveform peak reduction"""

import numpy as np
import pytest

from melodix.audio.waveform import played_bar_count, reduce_peaks, render_bars, split_played


class TestReducePeaks:
    """Test reduction of PCM buffers to bars"""

    def test_peak_per_window(self):
        assert reduce_peaks([0.0, 0.5, -1.0, 0.25], 2, normalize=False) == [0.5, 1.0]

    def test_normalized_to_loudest(self):
        peaks = reduce_peaks([0.0, 0.2, 0.1, 0.4], 2)
        assert peaks == pytest.approx([0.5, 1.0])

    def test_integer_pcm_is_scaled(self):
        samples = np.array([0, 16384, -32768, 0], dtype=np.int16)
        assert reduce_peaks(samples, 2, normalize=False) == pytest.approx([0.5, 1.0])

    @pytest.mark.parametrize("length,resolution", [(1000, 7), (44100, 80), (80, 80), (3, 1)])
    def test_exact_length(self, length, resolution):
        samples = np.random.default_rng(1).uniform(-1, 1, length)
        peaks = reduce_peaks(samples, resolution)

        assert len(peaks) == resolution
        assert all(0.0 <= value <= 1.0 for value in peaks)

    def test_deterministic(self):
        samples = np.random.default_rng(7).uniform(-1, 1, 5000)
        assert reduce_peaks(samples, 50) == reduce_peaks(samples.copy(), 50)

    def test_empty_buffer_gives_zeros(self):
        assert reduce_peaks([], 4) == [0.0, 0.0, 0.0, 0.0]

    def test_short_buffer_repeats_samples(self):
        """Each window takes the sample it starts on"""
        assert reduce_peaks([0.2, 1.0], 4, normalize=False) == pytest.approx([0.2, 0.2, 1.0, 1.0])

    def test_stereo_uses_loudest_channel(self):
        samples = np.array([[0.1, -0.8], [0.2, 0.3]])
        assert reduce_peaks(samples, 2, normalize=False) == pytest.approx([0.8, 0.3])

    def test_silence_stays_zero(self):
        assert reduce_peaks(np.zeros(100), 5) == [0.0] * 5

    def test_non_finite_values(self):
        peaks = reduce_peaks([np.nan, 0.5, 0.25, 0.0], 2, normalize=False)
        assert peaks == pytest.approx([0.5, 0.25])

    def test_invalid_resolution(self):
        with pytest.raises(ValueError):
            reduce_peaks([0.1, 0.2], 0)

    def test_invalid_shape(self):
        with pytest.raises(ValueError):
            reduce_peaks(np.zeros((2, 2, 2)), 2)


class TestPlayedSplit:
    def test_played_bar_count(self):
        assert played_bar_count(80, 30.0, 120.0) == 20
        assert played_bar_count(80, 500.0, 120.0) == 80
        assert played_bar_count(80, -1.0, 120.0) == 0
        assert played_bar_count(80, 10.0, 0.0) == 0

    def test_split_played(self):
        assert split_played([0.1, 0.2, 0.3, 0.4], 0.5) == ([0.1, 0.2], [0.3, 0.4])
        assert split_played([0.1, 0.2], 1.0) == ([0.1, 0.2], [])


class TestRenderBars:
    def test_rows_top_first(self):
        assert render_bars([0.0, 0.5, 1.0], height=2) == ["  █", " ██"]

    def test_invalid_height(self):
        with pytest.raises(ValueError):
            render_bars([0.5], height=0)
