"""
Utility functions and helpers for Melodix
Common functions for string processing, identifiers and validation
"""

import hashlib
from datetime import datetime
from pathlib import Path
from typing import Union
from urllib.parse import urlparse


def format_duration(seconds: Union[int, float]) -> str:
    """
    Format duration in seconds to human-readable string

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string
    """
    if seconds < 0:
        return "0:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        return f"{minutes}:{secs:02d}"


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate string to maximum length with suffix

    Args:
        text: Original text
        max_length: Maximum length including suffix
        suffix: Suffix to add when truncating

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text

    truncate_length = max_length - len(suffix)
    if truncate_length <= 0:
        return suffix[:max_length]

    return text[:truncate_length] + suffix


def generate_song_id(file_path: Union[str, Path]) -> str:
    """
    Derive a stable song identifier from the location of an audio file

    The same file always maps to the same id, so enqueueing a track twice
    from different entry points is recognised as the same song.

    Args:
        file_path: Path to the audio file

    Returns:
        Hex digest identifying the song
    """
    resolved = str(Path(file_path).expanduser().resolve())
    return hashlib.sha1(resolved.encode('utf-8')).hexdigest()[:16]


def is_remote_resource(resource: str) -> bool:
    """
    Check whether a resource reference points at an HTTP(S) location

    Args:
        resource: URL or filesystem path

    Returns:
        True for http:// and https:// URLs
    """
    try:
        return urlparse(str(resource)).scheme in ('http', 'https')
    except ValueError:
        return False


def validate_lyrics_content(lyrics: str, min_length: int = 20) -> bool:
    """
    Validate if lyrics content is meaningful

    Args:
        lyrics: Lyrics text to validate
        min_length: Minimum length for valid lyrics

    Returns:
        True if lyrics are valid
    """
    if not lyrics or len(lyrics.strip()) < min_length:
        return False

    no_lyrics_indicators = [
        'lyrics not found',
        'lyrics not available',
        'sorry, no lyrics',
    ]

    lyrics_lower = lyrics.lower()
    for indicator in no_lyrics_indicators:
        if indicator in lyrics_lower:
            return False

    return True


def format_timestamp(timestamp: Union[float, datetime]) -> str:
    """
    Format an epoch timestamp or datetime for display

    Args:
        timestamp: Seconds since the epoch or datetime object

    Returns:
        Formatted timestamp string
    """
    if isinstance(timestamp, datetime):
        dt = timestamp
    else:
        dt = datetime.fromtimestamp(timestamp)

    return dt.strftime('%Y-%m-%d %H:%M:%S')
