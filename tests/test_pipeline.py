"""Test the enrichment pipeline step"""

import asyncio

import pytest

from conftest import FakeProvider, make_song, SAMPLE_LYRICS
from melodix.core.exceptions import LookupTimeoutError, TaskCancelledError
from melodix.enhancement.cancellation import CancellationToken
from melodix.enhancement.pipeline import EnrichmentPipeline
from melodix.enhancement.providers import CallableProvider, TagSuggestion
from melodix.library.models import EnhancementStatus


class TestEnrichmentPipeline:
    """Test a single enrichment run"""

    @pytest.mark.asyncio
    async def test_reports_checkpoints_in_order(self, song):
        """Progress is reported at 10, 30, 70 and 100"""
        progress = []
        pipeline = EnrichmentPipeline(FakeProvider())

        await pipeline.run(song, progress.append, CancellationToken())

        assert progress == [10, 30, 70, 100]

    @pytest.mark.asyncio
    async def test_builds_patch_from_lookups(self, song):
        """Tags, synced lyrics and cover land in the patch"""
        tags = TagSuggestion(
            title="Midnight Rain (Remastered)",
            artist="Lofi Girl",
            album="Night Sessions",
            year=2021,
            cover_url="https://covers.example/front.jpg",
        )
        pipeline = EnrichmentPipeline(FakeProvider(tags=tags))

        patch = await pipeline.run(song, lambda value: None)

        assert patch.title == "Midnight Rain (Remastered)"
        assert patch.album == "Night Sessions"
        assert patch.year == 2021
        assert patch.tag_status == EnhancementStatus.FULL
        assert patch.lrc_content == SAMPLE_LYRICS
        assert patch.has_lyrics is True
        assert patch.lyrics_synced is True
        assert patch.lyrics_status == EnhancementStatus.FULL
        assert patch.cover_status == EnhancementStatus.FULL

    @pytest.mark.asyncio
    async def test_lyrics_use_corrected_tags(self, song):
        """The lyrics lookup uses the title and artist from the tag step"""
        provider = FakeProvider(tags=TagSuggestion(title="Corrected", artist="Right Artist"))
        pipeline = EnrichmentPipeline(provider)

        await pipeline.run(song, lambda value: None)

        assert provider.lyrics_calls == [("Corrected", "Right Artist", song.id)]

    @pytest.mark.asyncio
    async def test_short_lyrics_mean_not_found(self, song):
        """Lyrics below the minimum length are not an error"""
        pipeline = EnrichmentPipeline(FakeProvider(lyrics="la la"))

        patch = await pipeline.run(song, lambda value: None)

        assert patch.lyrics_status == EnhancementStatus.NONE
        assert patch.has_lyrics is None
        assert patch.lrc_content is None

    @pytest.mark.asyncio
    async def test_plain_lyrics_are_not_synced(self, song):
        plain = "Rain on the window\nMidnight again and again\n"
        pipeline = EnrichmentPipeline(FakeProvider(lyrics=plain))

        patch = await pipeline.run(song, lambda value: None)

        assert patch.has_lyrics is True
        assert patch.lyrics_synced is False

    @pytest.mark.asyncio
    async def test_complete_aspects_are_skipped(self):
        """Full tags and lyrics are not looked up again"""
        provider = FakeProvider()
        song = make_song(
            tag_status=EnhancementStatus.FULL,
            lyrics_status=EnhancementStatus.FULL,
            cover_status=EnhancementStatus.FULL,
        )
        progress = []

        patch = await EnrichmentPipeline(provider).run(song, progress.append)

        assert provider.tag_calls == []
        assert provider.lyrics_calls == []
        assert patch.is_empty()
        assert progress == [10, 30, 70, 100]

    @pytest.mark.asyncio
    async def test_cover_without_url_stays_unchanged(self, song):
        patch = await EnrichmentPipeline(FakeProvider()).run(song, lambda value: None)
        assert patch.cover_status is None

    @pytest.mark.asyncio
    async def test_timeout_raises_lookup_timeout(self, song):
        pipeline = EnrichmentPipeline(FakeProvider(tag_delay=1.0), timeout=0.01)

        with pytest.raises(LookupTimeoutError):
            await pipeline.run(song, lambda value: None)

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self, song):
        pipeline = EnrichmentPipeline(FakeProvider(fail_times=1))

        with pytest.raises(ConnectionError):
            await pipeline.run(song, lambda value: None)

    @pytest.mark.asyncio
    async def test_cancellation_stops_after_suspension(self, song):
        """A token cancelled during a lookup stops the run without more progress"""
        gate = asyncio.Event()
        progress = []
        token = CancellationToken("task-1")
        pipeline = EnrichmentPipeline(FakeProvider(gate=gate))

        run = asyncio.ensure_future(pipeline.run(song, progress.append, token))
        await asyncio.sleep(0.01)
        token.cancel("removed")
        gate.set()

        with pytest.raises(TaskCancelledError):
            await run
        assert progress == [10]

    @pytest.mark.asyncio
    async def test_cancelled_token_prevents_start(self, song):
        token = CancellationToken()
        token.cancel()
        provider = FakeProvider()

        with pytest.raises(TaskCancelledError):
            await EnrichmentPipeline(provider).run(song, lambda value: None, token)
        assert provider.tag_calls == []

    @pytest.mark.asyncio
    async def test_callable_provider(self, song):
        """Plain coroutine functions can serve as a provider"""
        async def suggest(s):
            await asyncio.sleep(0)
            return {'genre': 'Lo-Fi', 'unknown_field': 'ignored'}

        async def lyrics(title, artist, song_id):
            return None

        patch = await EnrichmentPipeline(CallableProvider(suggest, lyrics)).run(song, lambda value: None)

        assert patch.genre == "Lo-Fi"
        assert patch.lyrics_status == EnhancementStatus.NONE
