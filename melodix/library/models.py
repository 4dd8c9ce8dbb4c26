"""
Data models for library entries

This module defines the song record the rest of Melodix works on and the
patch produced by the enrichment pipeline. Songs are treated as values:
enrichment never mutates a song in place, it produces a SongPatch that is
applied on top of a snapshot to build a new Song.

Models:
    EnhancementStatus: Completeness of one aspect of a song (tags, lyrics, cover)
    Song: A library entry with its metadata and enrichment state
    SongPatch: Partial update produced by the enrichment pipeline

Serialization:
    Both models round-trip through plain dictionaries (to_dict/from_dict) so
    they can be persisted as JSON alongside the enhancement tasks that carry
    them. Unknown keys are ignored on load and missing optional keys fall back
    to defaults.
"""

import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Optional


class EnhancementStatus(Enum):
    """
    Completeness of a song aspect

    Values:
        FULL: Aspect is complete; the pipeline skips it
        PARTIAL: Some data is present but may be improved
        NONE: Nothing is known yet
    """
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> 'EnhancementStatus':
        """Lenient conversion used when loading persisted or external data"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.NONE


@dataclass
class Song:
    """
    A library entry

    Attributes:
        id: Stable song identifier (non-empty)
        title: Track title
        artist: Performing artist
        album: Album title, if known
        genre: Genre, if known
        year: Release year, if known
        duration: Length in seconds
        cover_url: Artwork location, if known
        url: Playable resource (local path or http(s) URL)
        date_added: Epoch seconds when the song entered the library
        lyrics_status: Completeness of the lyrics
        tag_status: Completeness of the tags
        cover_status: Completeness of the artwork
        lrc_content: Lyrics text, LRC formatted when synced
        has_lyrics: Whether lyrics are attached
    """
    id: str
    title: str
    artist: str
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    duration: float = 0.0
    cover_url: Optional[str] = None
    url: Optional[str] = None
    date_added: float = field(default_factory=time.time)
    lyrics_status: EnhancementStatus = EnhancementStatus.NONE
    tag_status: EnhancementStatus = EnhancementStatus.NONE
    cover_status: EnhancementStatus = EnhancementStatus.NONE
    lrc_content: Optional[str] = None
    has_lyrics: bool = False

    @property
    def is_valid(self) -> bool:
        """A song without an id cannot be tracked by the task queue"""
        return bool(self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Song':
        """
        Build a Song from a dictionary

        Args:
            data: Dictionary as produced by to_dict (extra keys are ignored)

        Returns:
            Song instance

        Raises:
            KeyError: If 'id' is missing
        """
        year = data.get('year')
        return cls(
            id=str(data['id']),
            title=data.get('title') or "Unknown Title",
            artist=data.get('artist') or "Unknown Artist",
            album=data.get('album'),
            genre=data.get('genre'),
            year=int(year) if year not in (None, "") else None,
            duration=float(data.get('duration') or 0.0),
            cover_url=data.get('cover_url'),
            url=data.get('url'),
            date_added=float(data.get('date_added') or time.time()),
            lyrics_status=EnhancementStatus.parse(data.get('lyrics_status', 'none')),
            tag_status=EnhancementStatus.parse(data.get('tag_status', 'none')),
            cover_status=EnhancementStatus.parse(data.get('cover_status', 'none')),
            lrc_content=data.get('lrc_content'),
            has_lyrics=bool(data.get('has_lyrics', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary"""
        return {
            'id': self.id,
            'title': self.title,
            'artist': self.artist,
            'album': self.album,
            'genre': self.genre,
            'year': self.year,
            'duration': self.duration,
            'cover_url': self.cover_url,
            'url': self.url,
            'date_added': self.date_added,
            'lyrics_status': self.lyrics_status.value,
            'tag_status': self.tag_status.value,
            'cover_status': self.cover_status.value,
            'lrc_content': self.lrc_content,
            'has_lyrics': self.has_lyrics,
        }

    def apply_patch(self, patch: 'SongPatch') -> 'Song':
        """
        Return a new Song with the patch applied

        Only fields the patch actually sets are changed.
        """
        return replace(self, **patch.changes())


@dataclass
class SongPatch:
    """
    Partial song update produced by the enrichment pipeline

    Every field defaults to None, meaning "leave unchanged". lyrics_synced is
    informational: it records whether lrc_content carries LRC timestamps and
    has no Song counterpart.
    """
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    cover_url: Optional[str] = None
    lrc_content: Optional[str] = None
    has_lyrics: Optional[bool] = None
    lyrics_synced: Optional[bool] = None
    tag_status: Optional[EnhancementStatus] = None
    lyrics_status: Optional[EnhancementStatus] = None
    cover_status: Optional[EnhancementStatus] = None

    _STATUS_FIELDS = ('tag_status', 'lyrics_status', 'cover_status')

    def changes(self) -> Dict[str, Any]:
        """Fields that are set and map onto Song attributes"""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != 'lyrics_synced' and getattr(self, f.name) is not None
        }

    def is_empty(self) -> bool:
        return not self.changes()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SongPatch':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        for name in cls._STATUS_FIELDS:
            if name in values:
                values[name] = EnhancementStatus.parse(values[name])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[f.name] = value.value if isinstance(value, EnhancementStatus) else value
        return result
