"""Tests for podcast platform resolution and episode parsing."""

import json
from datetime import datetime, timezone
from urllib.parse import quote

import pytest

from multifeed.errors import NetworkError, UnsupportedPlatform
from multifeed.models import PodcastPlatform, Source, SourceKind
from multifeed.sources import create_registry
from multifeed.sources.podcast import PodcastHandler, PodcastResolver, detect_podcast_platform, is_podcast_url
from multifeed.sources.podcast.platforms import ITUNES_LOOKUP_URL, SPOTIFY_OEMBED_URL
from multifeed.sync import SyncEngine


APPLE_URL = "https://podcasts.apple.com/us/podcast/the-example-show/id1200361736"
SPOTIFY_URL = "https://open.spotify.com/show/4rOoJ6Egrf8K2IrywzwOMk"
FEED_URL = "https://feeds.buzzsprout.com/12345.rss"

PODCAST_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>The Example Show</title>
    <description>Weekly talk</description>
    <itunes:image href="https://cdn.example.com/show.jpg"/>
    <item>
      <title>Episode 2</title>
      <guid>ep-2</guid>
      <pubDate>Sat, 01 Jun 2024 10:00:00 GMT</pubDate>
      <enclosure url="https://cdn.example.com/ep2.mp3" type="audio/mpeg" length="1000"/>
      <itunes:duration>1:02:03</itunes:duration>
      <itunes:episode>2</itunes:episode>
      <itunes:season>1</itunes:season>
      <itunes:explicit>yes</itunes:explicit>
      <itunes:author>Host Name</itunes:author>
      <description><![CDATA[<p>Show notes for episode 2</p>]]></description>
    </item>
    <item>
      <title>Trailer without audio</title>
      <guid>trailer</guid>
    </item>
  </channel>
</rss>
"""


def itunes_url(podcast_id: str = "1200361736") -> str:
    return ITUNES_LOOKUP_URL.format(id=podcast_id)


CHANNEL_ID = "UCabcdefghijklmnopqrstuv"
CHANNEL_PAGE = "https://www.youtube.com/@creator"
PODCASTS_PAGE = "https://www.youtube.com/@creator/podcasts"
SHOW_FEED = "https://www.youtube.com/feeds/videos.xml?playlist_id=PLaaaaaaaaaaaaaa1"

CHANNEL_HTML = (
    '<html><head><meta property="og:title" content="Some Creator"></head><body>'
    f'<script>{{"metadata":{{"externalId":"{CHANNEL_ID}"}}}}</script>'
    '{"tabRenderer":{"endpoint":{"url":"/@creator/podcasts"},"title":"Podcasts"}}</body></html>'
)

SHOW_PLAYLIST_HTML = (
    '"gridPlaylistRenderer":{"playlistId":"PLaaaaaaaaaaaaaa1","title":{"simpleText":"The Show"},'
    '"videoCountText":{"runs":[{"text":"20"}]}},'
)

SHOW_FEED_XML = f"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" xmlns="http://www.w3.org/2005/Atom">
  <title>The Show</title>
  <entry>
    <id>yt:video:abcdefghijk</id>
    <yt:videoId>abcdefghijk</yt:videoId>
    <yt:channelId>{CHANNEL_ID}</yt:channelId>
    <title>Episode one</title>
    <link rel="alternate" href="https://www.youtube.com/watch?v=abcdefghijk"/>
    <author><name>Some Creator</name></author>
    <published>2024-06-01T10:00:00+00:00</published>
  </entry>
</feed>
"""


class TestPlatformDetection:
    @pytest.mark.parametrize("url,platform", [
        (SPOTIFY_URL, PodcastPlatform.SPOTIFY),
        (APPLE_URL, PodcastPlatform.APPLE),
        ("https://music.amazon.com/podcasts/abc-123/the-show", PodcastPlatform.AMAZON),
        ("https://www.youtube.com/@creator/podcasts", PodcastPlatform.YOUTUBE),
        (FEED_URL, PodcastPlatform.RSS),
        ("https://example.com/podcast.xml", PodcastPlatform.RSS),
        ("https://example.com/about", PodcastPlatform.UNKNOWN),
    ])
    def test_detect_platform(self, url, platform):
        assert detect_podcast_platform(url) == platform

    def test_is_podcast_url(self):
        assert is_podcast_url(SPOTIFY_URL)
        assert is_podcast_url("https://anchor.fm/s/abc")
        assert is_podcast_url("https://example.com/my-podcast")
        assert not is_podcast_url("https://example.com/blog")


class TestPodcastResolver:
    @pytest.mark.asyncio
    async def test_apple(self, fetcher):
        fetcher.add(itunes_url(), json.dumps({"resultCount": 1, "results": [{
            "trackName": "The Example Show",
            "artistName": "Example Media",
            "feedUrl": FEED_URL,
            "artworkUrl100": "https://cdn.example.com/100.jpg",
            "artworkUrl600": "https://cdn.example.com/600.jpg",
        }]}), content_type="application/json")

        result = await PodcastResolver(fetcher).resolve(APPLE_URL)
        assert result.success
        assert result.platform == PodcastPlatform.APPLE
        assert result.feed_url == FEED_URL
        assert result.title == "The Example Show"
        assert result.author == "Example Media"
        assert result.image_url == "https://cdn.example.com/600.jpg"

    @pytest.mark.asyncio
    async def test_apple_without_feed_needs_manual_feed(self, fetcher):
        fetcher.add(itunes_url(), json.dumps({"results": [{"collectionName": "Exclusive Show"}]}))

        result = await PodcastResolver(fetcher).resolve(APPLE_URL)
        assert not result.success
        assert result.requires_manual_feed
        assert result.title == "Exclusive Show"

    @pytest.mark.asyncio
    async def test_apple_not_found(self, fetcher):
        fetcher.add(itunes_url(), json.dumps({"resultCount": 0, "results": []}))

        result = await PodcastResolver(fetcher).resolve(APPLE_URL)
        assert not result.success
        assert not result.requires_manual_feed
        assert result.error == "Podcast not found in Apple Podcasts"

    @pytest.mark.asyncio
    async def test_apple_url_without_id(self, fetcher):
        result = await PodcastResolver(fetcher).resolve("https://podcasts.apple.com/us/browse")
        assert not result.success
        assert fetcher.requests == []

    @pytest.mark.asyncio
    async def test_spotify_always_requires_manual_feed(self, fetcher):
        fetcher.add(SPOTIFY_OEMBED_URL.format(url=quote(SPOTIFY_URL, safe="")), json.dumps({"title": "Spotify Show"}))

        result = await PodcastResolver(fetcher).resolve(SPOTIFY_URL)
        assert not result.success
        assert result.requires_manual_feed
        assert result.title == "Spotify Show"
        assert "Spotify" in result.error

    @pytest.mark.asyncio
    async def test_spotify_without_oembed(self, fetcher):
        result = await PodcastResolver(fetcher).resolve(SPOTIFY_URL)
        assert result.requires_manual_feed
        assert result.title is None

    @pytest.mark.asyncio
    async def test_amazon(self, fetcher):
        result = await PodcastResolver(fetcher).resolve("https://music.amazon.com/podcasts/abc-123/the-show")
        assert result.platform == PodcastPlatform.AMAZON
        assert result.requires_manual_feed
        assert fetcher.requests == []

    @pytest.mark.asyncio
    async def test_rss(self, fetcher):
        fetcher.add(FEED_URL, PODCAST_FEED, content_type="application/rss+xml")

        result = await PodcastResolver(fetcher).resolve(FEED_URL)
        assert result.success
        assert result.is_podcast
        assert result.title == "The Example Show"
        assert result.to_dict()["platform"] == "rss"

    @pytest.mark.asyncio
    async def test_network_error_becomes_failed_result(self, fetcher):
        fetcher.fail(FEED_URL, NetworkError(FEED_URL))

        result = await PodcastResolver(fetcher).resolve(FEED_URL)
        assert not result.success
        assert not result.requires_manual_feed
        assert FEED_URL in result.error

    @pytest.mark.asyncio
    async def test_youtube_without_handler(self, fetcher):
        result = await PodcastResolver(fetcher).resolve("https://www.youtube.com/@creator/podcasts")
        assert not result.success
        assert result.platform == PodcastPlatform.YOUTUBE


class TestPodcastHandler:
    @pytest.mark.asyncio
    async def test_resolve_spotify_raises_unsupported(self, fetcher):
        with pytest.raises(UnsupportedPlatform) as excinfo:
            await PodcastHandler(fetcher).resolve(SPOTIFY_URL)
        assert excinfo.value.platform == "spotify"

    @pytest.mark.asyncio
    async def test_resolve_feed(self, fetcher):
        fetcher.add(FEED_URL, PODCAST_FEED)

        descriptor = await PodcastHandler(fetcher).resolve(FEED_URL)
        assert descriptor.kind == SourceKind.PODCAST
        assert descriptor.feed_url == FEED_URL
        assert descriptor.metadata["platform"] == "rss"

    @pytest.mark.asyncio
    async def test_detect_directory_without_fetching(self, fetcher):
        result = await PodcastHandler(fetcher).detect_url(APPLE_URL)
        assert result.detected
        assert result.metadata["platform"] == "apple"
        assert fetcher.requests == []

    @pytest.mark.asyncio
    async def test_detect_ignores_plain_feeds(self, fetcher):
        fetcher.add("https://example.com/feed.xml", "<rss><channel><title>Blog</title><item></item></channel></rss>")
        result = await PodcastHandler(fetcher).detect_url("https://example.com/feed.xml")
        assert not result.detected

    @pytest.mark.asyncio
    async def test_fetch_feed_parses_episodes(self, fetcher):
        fetcher.add(FEED_URL, PODCAST_FEED)
        source = Source(
            id="pod1",
            kind=SourceKind.PODCAST,
            url=FEED_URL,
            title="The Example Show",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        feed = await PodcastHandler(fetcher).fetch_feed(source)
        assert len(feed.items) == 1

        episode = feed.items[0]
        assert episode.native_id == "https://cdn.example.com/ep2.mp3"
        assert episode.title == "Episode 2"
        assert episode.published_at == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)

        payload = episode.payload
        assert payload.audio_url == "https://cdn.example.com/ep2.mp3"
        assert payload.duration_seconds == 3723
        assert payload.episode_number == 2
        assert payload.season_number == 1
        assert payload.explicit is True
        assert payload.author == "Host Name"
        assert payload.description == "Show notes for episode 2"
        assert payload.image_url == "https://cdn.example.com/show.jpg"


class TestYouTubePodcasts:
    @pytest.fixture
    def youtube_fetcher(self, fetcher):
        fetcher.add(CHANNEL_PAGE, CHANNEL_HTML)
        fetcher.add(PODCASTS_PAGE, SHOW_PLAYLIST_HTML)
        fetcher.add(SHOW_FEED, SHOW_FEED_XML, content_type="application/atom+xml")
        return fetcher

    @pytest.mark.asyncio
    async def test_podcasts_tab_detected_as_podcast(self, youtube_fetcher):
        result = await create_registry(youtube_fetcher).detect_source_type(PODCASTS_PAGE)
        assert result.detected
        assert result.kind == SourceKind.PODCAST
        assert result.handler.name == "podcast"
        assert result.metadata["platform"] == "youtube"

    @pytest.mark.asyncio
    async def test_channel_url_stays_youtube(self, youtube_fetcher):
        result = await create_registry(youtube_fetcher).detect_source_type(CHANNEL_PAGE)
        assert result.kind == SourceKind.YOUTUBE_CHANNEL
        assert result.handler.name == "youtube"

    @pytest.mark.asyncio
    async def test_add_podcasts_tab_subscribes_to_primary_playlist(self, youtube_fetcher, sqlite_store):
        engine = SyncEngine(sqlite_store, create_registry(youtube_fetcher))

        result = await engine.add_source(PODCASTS_PAGE, user_id="alice")
        assert result.success
        assert result.kind == SourceKind.PODCAST
        assert result.source.url == SHOW_FEED
        assert result.source.title == "The Show"
        assert result.source.metadata["platform"] == "youtube"
        assert result.source.metadata["author"] == "Some Creator"

        outcome = await engine.sync_source(result.source, full_sync=True)
        assert outcome.success
        assert outcome.items_added == 1

        episode = sqlite_store.list_content_items(result.source.id)[0]
        assert episode.native_id == "https://www.youtube.com/watch?v=abcdefghijk"
        assert episode.payload.audio_url == "https://www.youtube.com/watch?v=abcdefghijk"
        assert episode.payload.author == "Some Creator"
