"""
Configuration management package for Melodix

Settings are loaded from YAML files and environment variables and exposed
through a process-wide Settings instance:

    from melodix.config import get_settings

    settings = get_settings()
    ceiling = settings.enhancement.concurrency
"""

from .settings import get_settings, reload_settings, Settings

__all__ = [
    'get_settings',
    'reload_settings',
    'Settings',
]
