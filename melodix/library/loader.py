"""
Build library songs from audio files on disk

Tags are read with mutagen's "easy" interface, which exposes the same keys
(title, artist, album, genre, date) for ID3, Vorbis comments and MP4 atoms.
Files without usable tags still load: the title falls back to the file name
and every status starts at 'none' so the enrichment pipeline fills them in.
"""

import re
from pathlib import Path
from typing import Any, Optional, Union

import mutagen

from .models import EnhancementStatus, Song
from ..utils.helpers import generate_song_id
from ..utils.logger import get_logger


logger = get_logger(__name__)

LYRICS_TAGS = ('lyrics', 'unsyncedlyrics')


def _first(tags: Any, key: str) -> Optional[str]:
    """Return the first non-empty value of an easy tag"""
    if not tags:
        return None
    try:
        values = tags.get(key)
    except (KeyError, ValueError):
        return None
    if not values:
        return None
    value = values[0] if isinstance(values, list) else values
    value = str(value).strip()
    return value or None


def _parse_year(date_value: Optional[str]) -> Optional[int]:
    if not date_value:
        return None
    match = re.match(r'(\d{4})', date_value)
    return int(match.group(1)) if match else None


def load_song(file_path: Union[str, Path]) -> Song:
    """
    Create a Song from an audio file

    Args:
        file_path: Path to an audio file

    Returns:
        Song with whatever metadata the file carries

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(file_path).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Audio file not found: {path}")

    audio = None
    try:
        audio = mutagen.File(str(path), easy=True)
    except mutagen.MutagenError as e:
        logger.debug(f"Could not read tags from {path.name}: {e}")

    tags = audio.tags if audio is not None else None
    duration = 0.0
    if audio is not None and getattr(audio, 'info', None) is not None:
        duration = float(getattr(audio.info, 'length', 0.0) or 0.0)

    title = _first(tags, 'title')
    artist = _first(tags, 'artist')
    album = _first(tags, 'album')
    genre = _first(tags, 'genre')
    year = _parse_year(_first(tags, 'date'))

    lyrics = None
    for key in LYRICS_TAGS:
        lyrics = _first(tags, key)
        if lyrics:
            break

    if title and artist and album:
        tag_status = EnhancementStatus.FULL
    elif title or artist:
        tag_status = EnhancementStatus.PARTIAL
    else:
        tag_status = EnhancementStatus.NONE

    song = Song(
        id=generate_song_id(path),
        title=title or path.stem,
        artist=artist or "Unknown Artist",
        album=album,
        genre=genre,
        year=year,
        duration=duration,
        url=str(path.resolve()),
        tag_status=tag_status,
        lyrics_status=EnhancementStatus.PARTIAL if lyrics else EnhancementStatus.NONE,
        lrc_content=lyrics,
        has_lyrics=bool(lyrics),
    )

    logger.debug(f"Loaded song {song.id}: {song.artist} - {song.title} ({tag_status.value} tags)")
    return song
