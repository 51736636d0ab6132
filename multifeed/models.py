"""Core data models for multifeed."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


class SourceKind(str, Enum):
    """Kind of a subscribable source."""
    RSS = "rss"
    YOUTUBE_CHANNEL = "youtube_channel"
    YOUTUBE_VIDEO = "youtube_video"
    PODCAST = "podcast"
    TWITTER = "twitter"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    NEWSLETTER = "newsletter"
    WEBSITE = "website"


class ContentKind(str, Enum):
    """Kind of an ingested content item."""
    ARTICLE = "article"
    VIDEO = "video"
    EPISODE = "episode"


_CONTENT_KINDS = {
    SourceKind.RSS: ContentKind.ARTICLE,
    SourceKind.NEWSLETTER: ContentKind.ARTICLE,
    SourceKind.WEBSITE: ContentKind.ARTICLE,
    SourceKind.YOUTUBE_CHANNEL: ContentKind.VIDEO,
    SourceKind.YOUTUBE_VIDEO: ContentKind.VIDEO,
    SourceKind.PODCAST: ContentKind.EPISODE,
}


def content_kind_for(kind: SourceKind) -> ContentKind:
    """Content kind stored for items of a given source kind."""
    return _CONTENT_KINDS.get(kind, ContentKind.ARTICLE)


# =============================================================================
# Item payloads
# =============================================================================


@dataclass
class ArticlePayload:
    """Body and media of an article (RSS, newsletter, website)."""
    content: str | None = None
    excerpt: str | None = None
    author: str | None = None
    media_type: str = "none"  # none | image | video | audio
    media_url: str | None = None
    thumbnail_url: str | None = None
    media_duration: int | None = None
    reading_time: int | None = None
    word_count: int | None = None

    kind = ContentKind.ARTICLE

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, **asdict(self)}


@dataclass
class VideoPayload:
    """Metadata of a video. video_id is the platform-native ID."""
    video_id: str
    channel_id: str | None = None
    channel_name: str | None = None
    description: str | None = None
    thumbnail_url: str | None = None
    duration_seconds: int | None = None
    view_count: int | None = None
    like_count: int | None = None

    kind = ContentKind.VIDEO

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, **asdict(self)}


@dataclass
class EpisodePayload:
    """Metadata of a podcast episode. audio_url is the platform-native ID."""
    audio_url: str
    author: str | None = None
    description: str | None = None
    show_notes: str | None = None
    image_url: str | None = None
    duration_seconds: int | None = None
    episode_number: int | None = None
    season_number: int | None = None
    explicit: bool = False

    kind = ContentKind.EPISODE

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, **asdict(self)}


Payload = Union[ArticlePayload, VideoPayload, EpisodePayload]

_PAYLOAD_TYPES: dict[str, type] = {
    ContentKind.ARTICLE.value: ArticlePayload,
    ContentKind.VIDEO.value: VideoPayload,
    ContentKind.EPISODE.value: EpisodePayload,
}


def payload_from_dict(data: dict[str, Any]) -> Payload:
    """Rebuild a payload from its tagged dict form.

    Raises:
        ValueError: If the discriminator is missing or unknown.
    """
    data = dict(data)
    kind = data.pop("kind", None)
    payload_type = _PAYLOAD_TYPES.get(kind)
    if payload_type is None:
        raise ValueError(f"Unknown payload kind: {kind}")
    return payload_type(**data)


# =============================================================================
# Persisted entities
# =============================================================================


@dataclass
class Source:
    """A subscribable origin of content stored in the database.

    (kind, url) is the canonical key: resolving the same URL twice
    must land on the same Source.
    """
    id: str
    kind: SourceKind
    url: str                      # Canonical feed URL
    title: str
    created_at: datetime
    description: str | None = None
    avatar_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    last_fetched_at: datetime | None = None
    fetch_error: str | None = None
    fetch_count: int = 0
    is_active: bool = True

    @property
    def canonical_key(self) -> tuple[SourceKind, str]:
        return (self.kind, self.url)

    @classmethod
    def from_descriptor(cls, id: str, descriptor: "FeedDescriptor", created_at: datetime) -> "Source":
        """Create a Source from a resolved FeedDescriptor."""
        return cls(
            id=id,
            kind=descriptor.kind,
            url=descriptor.feed_url,
            title=descriptor.title,
            description=descriptor.description,
            avatar_url=descriptor.avatar_url,
            metadata={"resolver": descriptor.resolver, **descriptor.metadata},
            created_at=created_at,
        )


@dataclass
class ContentItem:
    """One ingested unit of content (article, video, episode).

    (source_id, native_id) is unique. native_id always comes from the
    platform (video ID, GUID/link, audio URL), never from feed position.
    """
    id: str
    source_id: str
    native_id: str
    title: str
    url: str
    published_at: datetime | None
    payload: Payload
    ingested_at: datetime
    updated_at: datetime | None = None

    @property
    def content_kind(self) -> ContentKind:
        return self.payload.kind

    def mutable_fields(self) -> dict[str, Any]:
        """Fields a re-sync may refresh (everything except identity)."""
        return {
            "title": self.title,
            "url": self.url,
            "published_at": self.published_at,
            "payload": self.payload,
        }


# =============================================================================
# Ephemeral results
# =============================================================================


@dataclass
class FeedDescriptor:
    """Result of resolving a user URL to a canonical fetchable feed."""
    kind: SourceKind
    feed_url: str
    title: str
    resolver: str                 # "rss", "youtube", "podcast"
    description: str | None = None
    avatar_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PodcastPlaylist:
    """A podcast playlist found on a YouTube channel's podcasts tab."""
    playlist_id: str
    title: str
    video_count: int = 0

    @property
    def feed_url(self) -> str:
        return f"https://www.youtube.com/feeds/videos.xml?playlist_id={self.playlist_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.playlist_id,
            "title": self.title,
            "video_count": self.video_count,
            "feed_url": self.feed_url,
        }


@dataclass
class ChannelInfo:
    """Everything scraped about a YouTube channel during resolution."""
    channel_id: str
    final_url: str
    channel_name: str | None = None
    description: str | None = None
    avatar_url: str | None = None
    original_handle: str | None = None
    final_handle: str | None = None
    was_redirected: bool = False
    has_podcasts: bool = False
    podcast_playlists: list[PodcastPlaylist] = field(default_factory=list)

    @property
    def feed_url(self) -> str:
        return f"https://www.youtube.com/feeds/videos.xml?channel_id={self.channel_id}"

    @property
    def primary_playlist(self) -> PodcastPlaylist | None:
        return self.podcast_playlists[0] if self.podcast_playlists else None


class PodcastPlatform(str, Enum):
    """Platform a podcast URL belongs to."""
    SPOTIFY = "spotify"
    APPLE = "apple"
    AMAZON = "amazon"
    YOUTUBE = "youtube"
    RSS = "rss"
    UNKNOWN = "unknown"


@dataclass
class PodcastPlatformResult:
    """Uniform result of every podcast platform resolver.

    requires_manual_feed marks platforms that can never be resolved
    automatically, as opposed to transient failures.
    """
    success: bool
    platform: PodcastPlatform
    feed_url: str | None = None
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    author: str | None = None
    error: str | None = None
    is_podcast: bool = True
    requires_manual_feed: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["platform"] = self.platform.value
        return data


@dataclass
class SyncOutcome:
    """Result of syncing one source once. Not persisted."""
    success: bool
    items_added: int = 0
    items_updated: int = 0
    error: str | None = None

    @classmethod
    def failure(cls, message: str) -> "SyncOutcome":
        return cls(success=False, error=message)


@dataclass
class SyncSummary:
    """Aggregate of SyncOutcomes across a batch of sources."""
    total_sources: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    total_items_added: int = 0
    total_items_updated: int = 0

    def record(self, outcome: SyncOutcome) -> None:
        self.total_sources += 1
        if outcome.success:
            self.successful_syncs += 1
        else:
            self.failed_syncs += 1
        # A failed source may still have stored items before the error
        self.total_items_added += outcome.items_added
        self.total_items_updated += outcome.items_updated
