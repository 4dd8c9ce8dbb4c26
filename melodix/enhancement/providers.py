"""
Enrichment providers

The pipeline talks to the outside world only through EnrichmentProvider:
one call suggesting corrected tags for a song and one call fetching its
lyrics. Both are coroutines; neither is expected to enforce its own
deadline since the pipeline wraps every call in a timeout.

Implementations:
    CallableProvider: Adapts two plain coroutine functions (hosts and tests)
    OnlineEnrichmentProvider: MusicBrainz tags, Cover Art Archive artwork and
        LRCLIB lyrics over aiohttp, throttled with asyncio-throttle
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import aiohttp
from asyncio_throttle import Throttler

from ..core.exceptions import ProviderError
from ..library.models import Song
from ..utils.logger import get_logger


@dataclass
class TagSuggestion:
    """Corrected tags for a song; None means "no opinion" """
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    cover_url: Optional[str] = None

    def is_empty(self) -> bool:
        return all(value is None for value in vars(self).values())


class EnrichmentProvider(ABC):
    """Source of tag suggestions and lyrics"""

    @abstractmethod
    async def suggest_tags(self, song: Song) -> TagSuggestion:
        """
        Suggest corrected tags for a song

        Raises:
            EnrichmentError: If the lookup fails
        """

    @abstractmethod
    async def fetch_lyrics(self, title: str, artist: str, song_id: Optional[str] = None) -> str:
        """
        Fetch lyrics for a track

        Returns:
            Lyrics text (LRC formatted when synced), or "" when none were found

        Raises:
            EnrichmentError: If the lookup fails
        """

    async def close(self) -> None:
        """Release network resources"""


TagsFunction = Callable[[Song], Awaitable[Any]]
LyricsFunction = Callable[[str, str, Optional[str]], Awaitable[Optional[str]]]


class CallableProvider(EnrichmentProvider):
    """
    Provider built from two coroutine functions

    The tags function may return a TagSuggestion, a dict of tag fields or None.
    """

    def __init__(self, suggest_tags: TagsFunction, fetch_lyrics: LyricsFunction):
        self._suggest_tags = suggest_tags
        self._fetch_lyrics = fetch_lyrics

    async def suggest_tags(self, song: Song) -> TagSuggestion:
        result = await self._suggest_tags(song)
        if result is None:
            return TagSuggestion()
        if isinstance(result, TagSuggestion):
            return result
        if isinstance(result, dict):
            return TagSuggestion(**{k: v for k, v in result.items() if k in TagSuggestion.__dataclass_fields__})
        raise ProviderError(f"Tag lookup returned unsupported type {type(result).__name__}")

    async def fetch_lyrics(self, title: str, artist: str, song_id: Optional[str] = None) -> str:
        return await self._fetch_lyrics(title, artist, song_id) or ""


class OnlineEnrichmentProvider(EnrichmentProvider):
    """
    Enrichment backed by public music databases

    - Tags: MusicBrainz recording search (best match above min_score)
    - Artwork: Cover Art Archive front image of the matched release
    - Lyrics: LRCLIB, synced lyrics preferred over plain ones

    MusicBrainz asks clients to stay at one request per second, so all
    requests go through a shared Throttler.
    """

    def __init__(
        self,
        musicbrainz_url: str = "https://musicbrainz.org/ws/2",
        lrclib_url: str = "https://lrclib.net/api",
        coverart_url: str = "https://coverartarchive.org",
        user_agent: str = "Melodix/1.0",
        rate_limit: int = 1,
        request_timeout: float = 30.0,
        min_score: int = 80
    ):
        self.musicbrainz_url = musicbrainz_url.rstrip('/')
        self.lrclib_url = lrclib_url.rstrip('/')
        self.coverart_url = coverart_url.rstrip('/')
        self.user_agent = user_agent
        self.min_score = min_score
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)
        self.throttler = Throttler(rate_limit=max(1, int(rate_limit)), period=1.0)
        self._session: Optional[aiohttp.ClientSession] = None
        self.logger = get_logger(__name__)

    @classmethod
    def from_settings(cls, settings) -> 'OnlineEnrichmentProvider':
        return cls(
            musicbrainz_url=settings.providers.musicbrainz_url,
            lrclib_url=settings.providers.lrclib_url,
            coverart_url=settings.providers.coverart_url,
            user_agent=settings.network.user_agent,
            rate_limit=settings.providers.rate_limit,
            request_timeout=settings.network.request_timeout,
        )

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={'User-Agent': self.user_agent, 'Accept': 'application/json'}
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_json(self, url: str, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        """
        GET a JSON document

        Returns:
            Parsed document, or None on 404

        Raises:
            ProviderError: On HTTP errors, rate limiting and network failures
        """
        async with self.throttler:
            try:
                async with self.session.get(url, params=params) as response:
                    if response.status == 404:
                        return None
                    if response.status in (429, 503):
                        raise ProviderError(
                            f"Rate limit exceeded by {url}",
                            details={'url': url},
                            status=response.status,
                            is_rate_limit=True
                        )
                    if response.status != 200:
                        text = await response.text()
                        raise ProviderError(
                            f"Provider error {response.status}: {text[:200]}",
                            details={'url': url},
                            status=response.status
                        )
                    return await response.json(content_type=None)
            except aiohttp.ClientError as e:
                raise ProviderError(f"Network error: {e}", details={'url': url, 'original_error': str(e)})
            except ValueError as e:
                raise ProviderError(f"Invalid response from {url}: {e}", details={'url': url})

    async def suggest_tags(self, song: Song) -> TagSuggestion:
        query = f'recording:"{_escape_lucene(song.title)}" AND artist:"{_escape_lucene(song.artist)}"'
        data = await self._get_json(
            f"{self.musicbrainz_url}/recording",
            {'query': query, 'fmt': 'json', 'limit': '5'}
        )
        suggestion, release_id = self.parse_recording_search(data or {}, self.min_score)
        if release_id:
            suggestion.cover_url = f"{self.coverart_url}/release/{release_id}/front-500"
        self.logger.debug(f"MusicBrainz suggestion for {song.id}: {suggestion}")
        return suggestion

    async def fetch_lyrics(self, title: str, artist: str, song_id: Optional[str] = None) -> str:
        data = await self._get_json(
            f"{self.lrclib_url}/get",
            {'track_name': title, 'artist_name': artist}
        )
        lyrics = self.parse_lyrics_response(data)
        if not lyrics:
            self.logger.debug(f"No lyrics found for {artist} - {title}")
        return lyrics

    @staticmethod
    def parse_recording_search(data: Dict[str, Any], min_score: int = 80) -> Tuple[TagSuggestion, Optional[str]]:
        """
        Pick the best recording of a MusicBrainz search response

        Returns:
            The suggested tags (without a cover) and the release id of the
            match, which suggest_tags turns into a Cover Art Archive URL
        """
        recordings = data.get('recordings') or []
        best = None
        for recording in recordings:
            if int(recording.get('score', 0)) >= min_score:
                best = recording
                break
        if best is None:
            return TagSuggestion(), None

        credits = best.get('artist-credit') or []
        artist = ''.join(
            credit.get('name', '') + credit.get('joinphrase', '') for credit in credits
        ).strip() or None

        releases = best.get('releases') or []
        release = releases[0] if releases else {}

        date = best.get('first-release-date') or release.get('date') or ''
        year_match = re.match(r'(\d{4})', date)

        tags = sorted(best.get('tags') or [], key=lambda t: t.get('count', 0), reverse=True)
        genre = tags[0]['name'].title() if tags and tags[0].get('name') else None

        suggestion = TagSuggestion(
            title=best.get('title') or None,
            artist=artist,
            album=release.get('title') or None,
            genre=genre,
            year=int(year_match.group(1)) if year_match else None,
        )
        return suggestion, release.get('id') or None

    @staticmethod
    def parse_lyrics_response(data: Optional[Dict[str, Any]]) -> str:
        """Extract lyrics from an LRCLIB record; synced lyrics win"""
        if not data or data.get('instrumental'):
            return ""
        return (data.get('syncedLyrics') or data.get('plainLyrics') or "").strip()


def _escape_lucene(text: str) -> str:
    return re.sub(r'([+\-!(){}\[\]^"~*?:\\/]|&&|\|\|)', r'\\\1', text or '')
