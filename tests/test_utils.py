# tests/test_utils.py
"""Test utilities, error mapping and settings"""

import asyncio
from datetime import datetime

import pytest

from melodix.config.settings import Settings
from melodix.core.exceptions import (
    AudioDecodeError, LookupTimeoutError, MelodixError, ProviderError, user_message,
)
from melodix.utils.helpers import (
    format_duration,
    format_timestamp,
    generate_song_id,
    is_remote_resource,
    truncate_string,
    validate_lyrics_content
)


class TestHelpers:
    """Test helper functions"""

    def test_format_duration(self):
        """Test duration formatting"""
        assert format_duration(90) == "1:30"
        assert format_duration(3661) == "1:01:01"
        assert format_duration(0) == "0:00"
        assert format_duration(-10) == "0:00"

    def test_truncate_string(self):
        """Test string truncation"""
        assert truncate_string("Midnight Rain", 20) == "Midnight Rain"
        assert truncate_string("Midnight Rain", 8) == "Midni..."
        assert truncate_string("Midnight Rain", 2) == ".."

    def test_generate_song_id(self, temp_dir):
        """Test stable song identifiers"""
        first = generate_song_id(temp_dir / "a.mp3")
        assert first == generate_song_id(str(temp_dir / "a.mp3"))
        assert first != generate_song_id(temp_dir / "b.mp3")
        assert len(first) == 16

    def test_is_remote_resource(self):
        """Test remote resource detection"""
        assert is_remote_resource("https://cdn.example/track.mp3")
        assert is_remote_resource("http://cdn.example/track.mp3")
        assert not is_remote_resource("/music/track.mp3")
        assert not is_remote_resource("C:\\Music\\track.mp3")

    def test_validate_lyrics_content(self):
        """Test lyrics content validation"""
        assert validate_lyrics_content("This is a valid song lyrics content") == True
        assert validate_lyrics_content("short") == False
        assert validate_lyrics_content("Sorry, no lyrics for this track yet") == False

    def test_format_timestamp(self):
        assert format_timestamp(datetime(2024, 5, 1, 12, 30, 5)) == "2024-05-01 12:30:05"


class TestUserMessage:
    """Test mapping of errors to task list messages"""

    def test_timeouts(self):
        assert user_message(LookupTimeoutError("Tag lookup timed out")) == "The enrichment service did not respond in time."
        assert user_message(asyncio.TimeoutError()) == "The enrichment service did not respond in time."

    def test_network(self):
        assert user_message(ConnectionError("network unreachable")) == "Network error. Check your internet connection."
        assert user_message(ProviderError("Network error: refused")) == "Network error. Check your internet connection."

    def test_rate_limit(self):
        error = ProviderError("Rate limit exceeded", status=429, is_rate_limit=True)
        assert "rate limit" in user_message(error)

    def test_decode(self):
        assert "could not be decoded" in user_message(AudioDecodeError("Failed to decode audio"))

    def test_fallback(self):
        assert user_message(MelodixError("bad tags")) == "Enhancement failed: bad tags"
        assert user_message(RuntimeError()) == "An unexpected error occurred."


class TestSettings:
    """Test configuration loading"""

    @pytest.fixture(autouse=True)
    def isolated_home(self, temp_dir, monkeypatch):
        """Keep a developer config in ~/.melodix out of the tests"""
        monkeypatch.setenv('HOME', str(temp_dir / "home"))

    def test_defaults(self, temp_dir, monkeypatch):
        monkeypatch.setenv('MELODIX_CONFIG_DIR', str(temp_dir / "state"))
        settings = Settings(str(temp_dir / "missing.yaml"))

        assert settings.enhancement.concurrency == 3
        assert settings.enhancement.max_retries == 2
        assert settings.visualizer.fft_size == 2048
        assert settings.get_tasks_path() == temp_dir / "state" / "enhancement_tasks.json"
        assert (temp_dir / "state").is_dir()

    def test_yaml_overrides(self, temp_dir, monkeypatch):
        monkeypatch.setenv('MELODIX_CONFIG_DIR', str(temp_dir))
        config_file = temp_dir / "config.yaml"
        config_file.write_text(
            "enhancement:\n  concurrency: 5\n  unknown_key: 1\nvisualizer:\n  fft_size: 512\n",
            encoding="utf-8"
        )

        settings = Settings(str(config_file))

        assert settings.enhancement.concurrency == 5
        assert settings.visualizer.fft_size == 512
        assert not hasattr(settings.enhancement, 'unknown_key')

    def test_environment_overrides(self, temp_dir, monkeypatch):
        monkeypatch.setenv('MELODIX_CONFIG_DIR', str(temp_dir))
        monkeypatch.setenv('MELODIX_LOOKUP_TIMEOUT', "12.5")
        monkeypatch.setenv('MELODIX_LOG_LEVEL', "DEBUG")

        settings = Settings(str(temp_dir / "missing.yaml"))

        assert settings.enhancement.lookup_timeout == 12.5
        assert settings.logging.level == "DEBUG"

    def test_validate(self, temp_dir, monkeypatch):
        monkeypatch.setenv('MELODIX_CONFIG_DIR', str(temp_dir))
        settings = Settings(str(temp_dir / "missing.yaml"))
        assert settings.validate()

        settings.visualizer.fft_size = 1000
        assert not settings.validate()

    def test_save_config(self, temp_dir, monkeypatch):
        monkeypatch.setenv('MELODIX_CONFIG_DIR', str(temp_dir))
        settings = Settings(str(temp_dir / "missing.yaml"))
        settings.enhancement.max_retries = 4

        settings.save_config(str(temp_dir / "saved.yaml"))

        assert Settings(str(temp_dir / "saved.yaml")).enhancement.max_retries == 4
