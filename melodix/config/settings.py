"""
Configuration management for Melodix

This module handles loading, validation, and management of application settings
from multiple sources including YAML files and environment variables. It provides
a centralized configuration system that supports hot-reloading and validation.

The configuration is organized into logical sections using dataclasses:
- Enhancement queue settings (concurrency ceiling, retries, lookup timeout)
- Visualizer analysis options (FFT size, smoothing, decibel range, waveform bars)
- Enrichment provider endpoints (MusicBrainz, LRCLIB, Cover Art Archive)
- Logging, network and storage configuration

Non-sensitive settings live in YAML files, while deployment specific values
(config directory, log level, user agent) can be overridden from environment
variables or a local .env file.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()


@dataclass
class EnhancementConfig:
    """
    Enhancement task queue configuration

    Controls how many enrichment jobs may run at once, how often a failing
    job is retried before it is marked failed, and how long a single remote
    lookup may take before it is abandoned.
    """
    concurrency: int = 3
    max_retries: int = 2
    lookup_timeout: float = 30.0
    min_lyrics_length: int = 20
    tasks_file: str = "enhancement_tasks.json"


@dataclass
class VisualizerConfig:
    """
    Real-time audio analysis configuration

    Mirrors the knobs of a browser AnalyserNode so that spectrum bars look the
    same regardless of which host feeds the samples.
    """
    fft_size: int = 2048
    smoothing: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0
    waveform_resolution: int = 80


@dataclass
class ProvidersConfig:
    """
    Remote enrichment provider endpoints

    MusicBrainz asks clients to stay at or below one request per second,
    which is what rate_limit expresses.
    """
    musicbrainz_url: str = "https://musicbrainz.org/ws/2"
    lrclib_url: str = "https://lrclib.net/api"
    coverart_url: str = "https://coverartarchive.org"
    rate_limit: int = 1


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings

    Controls application logging behavior including log levels, file output,
    rotation, and console formatting.
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


@dataclass
class NetworkConfig:
    """Network and HTTP configuration settings"""
    user_agent: str = "Melodix/0.1 (https://github.com/melodix/melodix)"
    request_timeout: int = 30


@dataclass
class StorageConfig:
    """Location of persisted application state"""
    config_directory: str = "~/.melodix/"


class Settings:
    """
    Main settings class that manages all configuration

    This class serves as the central configuration manager, loading settings
    from multiple sources (YAML files, environment variables) and providing
    a unified interface for accessing configuration throughout the application.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize settings from config file or environment variables

        Args:
            config_path: Path to custom config file, if None uses default locations
        """
        self.config_path = config_path
        self.config_dir = Path.home() / ".melodix"

        # Initialize all configuration objects with default values
        self.enhancement = EnhancementConfig()
        self.visualizer = VisualizerConfig()
        self.providers = ProvidersConfig()
        self.logging = LoggingConfig()
        self.network = NetworkConfig()
        self.storage = StorageConfig()

        # Load configuration from various sources in order of precedence
        self._load_config()
        self._load_environment_variables()
        self._create_directories()

    def _load_config(self) -> None:
        """
        Load configuration from YAML file

        Searches for configuration files in multiple locations in order of
        precedence. The first file found will be used.
        """
        config_paths = [
            self.config_path,
            self.config_dir / "config.yaml",
            Path("config/config.yaml"),
            Path("config.yaml")
        ]

        config_data = {}
        for path in config_paths:
            if path and Path(path).exists():
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        config_data = yaml.safe_load(f) or {}
                    break
                except Exception as e:
                    print(f"Warning: Failed to load config from {path}: {e}")

        self._apply_config(config_data)

    def _sections(self) -> Dict[str, Any]:
        return {
            'enhancement': self.enhancement,
            'visualizer': self.visualizer,
            'providers': self.providers,
            'logging': self.logging,
            'network': self.network,
            'storage': self.storage,
        }

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """
        Apply configuration data to dataclass instances

        Only attributes that exist in both the config file and the dataclass
        definition are updated; unknown keys are ignored.

        Args:
            config_data: Dictionary containing configuration sections
        """
        config_mapping = self._sections()

        for section_name, section_data in config_data.items():
            if section_name in config_mapping and isinstance(section_data, dict):
                config_obj = config_mapping[section_name]
                for key, value in section_data.items():
                    if hasattr(config_obj, key):
                        setattr(config_obj, key, value)

    def _load_environment_variables(self) -> None:
        """
        Load deployment specific configuration from environment variables

        Environment variables take precedence over file-based configuration.
        """
        env_mappings = {
            'MELODIX_CONFIG_DIR': lambda v: setattr(self.storage, 'config_directory', v),
            'MELODIX_LOG_LEVEL': lambda v: setattr(self.logging, 'level', v),
            'MELODIX_LOOKUP_TIMEOUT': lambda v: setattr(self.enhancement, 'lookup_timeout', float(v)),
            'MELODIX_USER_AGENT': lambda v: setattr(self.network, 'user_agent', v),
        }

        for env_var, setter in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                try:
                    setter(value)
                except ValueError:
                    print(f"Warning: Ignoring invalid value for {env_var}: {value}")

    def _create_directories(self) -> None:
        """
        Create the configuration directory used for persisted state

        Handles permission errors gracefully with warnings.
        """
        directory = Path(self.storage.config_directory).expanduser()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            print(f"Warning: Failed to create directory {directory}: {e}")

    def get_config_directory(self) -> Path:
        """
        Get the expanded config directory path

        Returns:
            Path object for the configuration directory
        """
        return Path(self.storage.config_directory).expanduser()

    def get_tasks_path(self) -> Path:
        """
        Get the path of the persisted enhancement task store

        Returns:
            Path object for the task store JSON file
        """
        tasks_file = Path(self.enhancement.tasks_file).expanduser()
        if tasks_file.is_absolute():
            return tasks_file
        return self.get_config_directory() / tasks_file

    def save_config(self, path: Optional[str] = None) -> None:
        """
        Save current configuration to file

        Args:
            path: Custom path to save config, defaults to user config directory

        Raises:
            Exception: If the configuration cannot be saved
        """
        if not path:
            path = self.get_config_directory() / "config.yaml"
        else:
            path = Path(path)

        config_data = {
            name: self._dataclass_to_dict(section)
            for name, section in self._sections().items()
        }

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                yaml.dump(config_data, f, default_flow_style=False, indent=2)
        except Exception as e:
            raise Exception(f"Failed to save config to {path}: {e}")

    def _dataclass_to_dict(self, obj) -> Dict[str, Any]:
        result = {}
        for key, value in obj.__dict__.items():
            result[key] = value
        return result

    def validate(self) -> bool:
        """
        Validate current configuration

        Returns:
            True if configuration is valid, False otherwise
        """
        errors = []

        if self.enhancement.concurrency < 1:
            errors.append(f"Invalid enhancement concurrency: {self.enhancement.concurrency}")

        if self.enhancement.max_retries < 0:
            errors.append(f"Invalid max_retries: {self.enhancement.max_retries}")

        if self.enhancement.lookup_timeout <= 0:
            errors.append(f"Invalid lookup_timeout: {self.enhancement.lookup_timeout}")

        fft_size = self.visualizer.fft_size
        if fft_size < 32 or fft_size > 32768 or fft_size & (fft_size - 1):
            errors.append(f"fft_size must be a power of two between 32 and 32768: {fft_size}")

        if not 0.0 <= self.visualizer.smoothing < 1.0:
            errors.append(f"Invalid smoothing constant: {self.visualizer.smoothing}")

        if self.visualizer.min_decibels >= self.visualizer.max_decibels:
            errors.append("min_decibels must be lower than max_decibels")

        if self.visualizer.waveform_resolution < 1:
            errors.append(f"Invalid waveform resolution: {self.visualizer.waveform_resolution}")

        if errors:
            print("Configuration validation errors:")
            for error in errors:
                print(f"  - {error}")
            return False

        return True

    def __str__(self) -> str:
        sections = [
            f"Concurrency: {self.enhancement.concurrency}",
            f"Retries: {self.enhancement.max_retries}",
            f"FFT: {self.visualizer.fft_size}",
            f"Config: {self.storage.config_directory}",
        ]
        return f"Settings({', '.join(sections)})"


# Global settings instance for singleton pattern
settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings instance

    Returns:
        The global Settings instance
    """
    return settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Reload settings from configuration files

    Args:
        config_path: Optional path to specific config file

    Returns:
        New Settings instance with reloaded configuration
    """
    global settings
    settings = Settings(config_path)
    return settings
