"""
Library package
Song records and loading them from audio files
"""

from .models import EnhancementStatus, Song, SongPatch
from .loader import load_song

__all__ = [
    'EnhancementStatus',
    'Song',
    'SongPatch',
    'load_song',
]
