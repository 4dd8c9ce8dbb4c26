"""
Enrichment pipeline step

One run enriches one song snapshot: tags first, then lyrics looked up with
the corrected title and artist, then artwork bookkeeping. The run reports
progress at fixed checkpoints and returns a SongPatch; it never mutates the
song or any queue state, so a cancelled or failed run leaves nothing behind.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from .cancellation import CancellationToken
from .providers import EnrichmentProvider, TagSuggestion
from ..core.exceptions import LookupTimeoutError
from ..library.models import EnhancementStatus, Song, SongPatch
from ..lyrics.lrc import is_lrc
from ..utils.helpers import validate_lyrics_content
from ..utils.logger import get_logger


PROGRESS_TAGS_STARTED = 10
PROGRESS_TAGS_DONE = 30
PROGRESS_LYRICS_DONE = 70
PROGRESS_FINALIZED = 100

ProgressCallback = Callable[[int], None]

T = TypeVar('T')


class EnrichmentPipeline:
    """
    Stateless enrichment of a song through an EnrichmentProvider

    Every provider call is bounded by lookup_timeout and followed by a
    cancellation check, so an abandoned run stops at its next suspension
    point instead of reporting progress for a task that no longer wants it.
    """

    def __init__(
        self,
        provider: EnrichmentProvider,
        timeout: Optional[float] = 30.0,
        min_lyrics_length: int = 20
    ):
        """
        Initialize the pipeline

        Args:
            provider: Source of tag suggestions and lyrics
            timeout: Seconds allowed per lookup (None disables the limit)
            min_lyrics_length: Shorter lyrics are treated as not found
        """
        self.provider = provider
        self.timeout = timeout
        self.min_lyrics_length = min_lyrics_length
        self.logger = get_logger(__name__)

    async def _lookup(self, name: str, song_id: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise LookupTimeoutError(
                f"{name} lookup timed out after {self.timeout}s",
                details={'song_id': song_id, 'lookup': name}
            )

    async def run(
        self,
        song: Song,
        progress: ProgressCallback,
        token: Optional[CancellationToken] = None
    ) -> SongPatch:
        """
        Enrich a song

        Args:
            song: Snapshot of the song to enrich
            progress: Called with each checkpoint (10, 30, 70, 100)
            token: Cancellation token of this run

        Returns:
            Patch with the changes to apply to the song

        Raises:
            TaskCancelledError: If the token was cancelled during the run
            LookupTimeoutError: If a lookup exceeded the timeout
            EnrichmentError: If the provider failed
        """
        token = token or CancellationToken()
        patch = SongPatch()
        title, artist = song.title, song.artist

        # 1. Tags
        token.raise_if_cancelled()
        progress(PROGRESS_TAGS_STARTED)
        suggestion = TagSuggestion()
        if song.tag_status != EnhancementStatus.FULL:
            suggestion = await self._lookup('Tag', song.id, self.provider.suggest_tags(song))
            token.raise_if_cancelled()

            patch.title = suggestion.title or None
            patch.artist = suggestion.artist or None
            patch.album = suggestion.album or None
            patch.genre = suggestion.genre or None
            patch.year = suggestion.year
            patch.cover_url = suggestion.cover_url or None
            patch.tag_status = EnhancementStatus.FULL
            title = patch.title or title
            artist = patch.artist or artist
        else:
            self.logger.debug(f"Tags of {song.id} already complete, skipping lookup")
        progress(PROGRESS_TAGS_DONE)

        # 2. Lyrics, looked up with the corrected title and artist
        if song.lyrics_status != EnhancementStatus.FULL:
            lyrics = await self._lookup('Lyrics', song.id, self.provider.fetch_lyrics(title, artist, song.id))
            token.raise_if_cancelled()

            if lyrics and validate_lyrics_content(lyrics, self.min_lyrics_length):
                patch.lrc_content = lyrics
                patch.has_lyrics = True
                patch.lyrics_synced = is_lrc(lyrics)
                patch.lyrics_status = EnhancementStatus.FULL
            else:
                patch.lyrics_status = EnhancementStatus.NONE
        else:
            self.logger.debug(f"Lyrics of {song.id} already complete, skipping lookup")
        progress(PROGRESS_LYRICS_DONE)

        # 3. Artwork comes with the tag suggestion
        if song.cover_status != EnhancementStatus.FULL and (patch.cover_url or song.cover_url):
            patch.cover_status = EnhancementStatus.FULL

        token.raise_if_cancelled()
        progress(PROGRESS_FINALIZED)

        self.logger.debug(f"Enrichment of {song.id} produced {patch.to_dict()}")
        return patch
