"""Test the command line interface"""

import numpy as np
import pytest
from click.testing import CliRunner

from conftest import FakeProvider
from melodix import __version__, main
from melodix.config.settings import Settings
from melodix.enhancement.providers import TagSuggestion


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_settings(temp_dir, monkeypatch):
    """Settings persisting to a temporary directory, with an offline provider"""
    monkeypatch.setenv('HOME', str(temp_dir / "home"))
    monkeypatch.setenv('MELODIX_CONFIG_DIR', str(temp_dir / "state"))
    settings = Settings(str(temp_dir / "missing.yaml"))
    provider = FakeProvider(tags=TagSuggestion(album="Night Sessions"))
    build = main.build_services

    monkeypatch.setattr(main, 'build_services', lambda: build(settings, provider))
    return settings


class TestCli:
    """Test CLI commands"""

    def test_version(self, runner):
        result = runner.invoke(main.cli, ['--version'])
        assert result.exit_code == 0
        assert f"Melodix v{__version__}" in result.output

    def test_waveform(self, runner, sine_wav):
        result = runner.invoke(main.cli, ['waveform', str(sine_wav), '--resolution', '10', '--height', '4'])

        assert result.exit_code == 0
        assert '█' in result.output

    def test_waveform_undecodable(self, runner, temp_dir):
        path = temp_dir / "broken.wav"
        path.write_bytes(b"definitely not audio")

        result = runner.invoke(main.cli, ['waveform', str(path)])

        assert result.exit_code == 1

    def test_spectrum(self, runner, sine_wav):
        result = runner.invoke(main.cli, ['spectrum', str(sine_wav), '--frames', '3', '--bars', '16'])

        assert result.exit_code == 0
        frames = [line for line in result.output.splitlines() if line.startswith('  0:00')]
        assert len(frames) == 3

    def test_spectrum_line(self):
        line = main.spectrum_line(np.array([0, 255, 128, 0], dtype=np.uint8), 2)
        assert line == "█▄"

    def test_enhance_and_list(self, runner, cli_settings, sine_wav):
        """Enhanced files end up as completed tasks in the persisted list"""
        result = runner.invoke(main.cli, ['enhance', str(sine_wav), '--no-progress'])
        assert result.exit_code == 0, result.output
        assert "Completed: 1" in result.output

        result = runner.invoke(main.cli, ['tasks', 'list'])
        assert result.exit_code == 0
        assert "completed" in result.output
        assert "1 tasks: 0 pending" in result.output

        result = runner.invoke(main.cli, ['tasks', 'clear', '--completed'])
        assert "Removed 1 tasks" in result.output

    def test_tasks_list_empty(self, runner, cli_settings):
        result = runner.invoke(main.cli, ['tasks', 'list'])
        assert "No enhancement tasks" in result.output

    def test_unknown_task_prefix(self, runner, cli_settings):
        result = runner.invoke(main.cli, ['tasks', 'retry', 'ffff'])
        assert result.exit_code == 1
        assert "No task matches" in result.output

    def test_extensions(self, runner, cli_settings):
        result = runner.invoke(main.cli, ['extensions', 'list'])
        assert "core-gemini-ai" in result.output

        result = runner.invoke(main.cli, ['extensions', 'toggle', 'lrc-local-provider'])
        assert "lrc-local-provider is now disabled" in result.output

        result = runner.invoke(main.cli, ['extensions', 'toggle', 'missing'])
        assert result.exit_code == 1

    def test_config_show(self, runner):
        result = runner.invoke(main.cli, ['config', 'show'])
        assert result.exit_code == 0
        assert "FFT size" in result.output
