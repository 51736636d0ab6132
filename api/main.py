"""FastAPI server exposing multifeed functionality."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from multifeed.classifier import is_youtube_url
from multifeed.config import Config
from multifeed.content import ReadabilityExtractor
from multifeed.errors import NetworkError, SourceNotFound
from multifeed.fetcher import FeedFetcher
from multifeed.models import Source, SourceKind, SyncSummary
from multifeed.sources import HandlerRegistry, create_registry
from multifeed.sources.podcast import PodcastResolver
from multifeed.sources.rss import validate_feed
from multifeed.sources.youtube import YouTubeHandler
from multifeed.store import Store
from multifeed.sync import SyncEngine

logger = logging.getLogger(__name__)

# A source fetched within this many minutes counts as recently synced
RECENT_FETCH_MINUTES = 30


# =============================================================================
# Pydantic models for API
# =============================================================================


class UrlRequest(BaseModel):
    url: str


class SyncRequest(BaseModel):
    source_id: str | None = None


class SourceResponse(BaseModel):
    id: str
    kind: str
    url: str
    title: str
    description: str | None
    avatar_url: str | None
    metadata: dict[str, Any]
    created_at: datetime
    last_fetched_at: datetime | None
    fetch_error: str | None
    fetch_count: int
    is_active: bool


class AddSourceResponse(BaseModel):
    success: bool
    created: bool = False
    kind: str | None = None
    source: SourceResponse | None = None
    error: str | None = None
    requires_manual_feed: bool = False


class DetectResponse(BaseModel):
    detected: bool
    kind: str | None = None
    handler: str | None = None
    transformed_url: str | None = None
    suggested_title: str | None = None
    supported: bool = False
    metadata: dict[str, Any] = {}


class SyncResponse(BaseModel):
    success: bool
    total_sources: int
    successful_syncs: int
    failed_syncs: int
    total_items_added: int
    total_items_updated: int
    synced_at: datetime


class SourceStatus(BaseModel):
    id: str
    title: str
    kind: str
    last_fetched_at: datetime | None
    fetch_error: str | None
    fetch_count: int
    recently_fetched: bool


class FeedStatusResponse(BaseModel):
    total_sources: int
    recently_fetched: int
    with_errors: int
    sources: list[SourceStatus]


class ValidateResponse(BaseModel):
    is_rss: bool
    is_podcast: bool
    title: str | None = None
    description: str | None = None
    content_type: str | None = None
    final_url: str | None = None
    error: str | None = None


class PlaylistResponse(BaseModel):
    id: str
    title: str
    video_count: int
    feed_url: str


class ChannelInfoResponse(BaseModel):
    channel_id: str
    channel_name: str | None
    channel_description: str | None
    feed_url: str
    avatar_url: str | None
    was_redirected: bool
    original_handle: str | None
    final_handle: str | None
    final_url: str
    has_podcasts: bool
    podcast_playlists: list[PlaylistResponse]


def source_response(source: Source) -> SourceResponse:
    return SourceResponse(
        id=source.id,
        kind=source.kind.value,
        url=source.url,
        title=source.title,
        description=source.description,
        avatar_url=source.avatar_url,
        metadata=source.metadata,
        created_at=source.created_at,
        last_fetched_at=source.last_fetched_at,
        fetch_error=source.fetch_error,
        fetch_count=source.fetch_count,
        is_active=source.is_active,
    )


def sync_response(summary: SyncSummary) -> SyncResponse:
    return SyncResponse(
        success=True,
        total_sources=summary.total_sources,
        successful_syncs=summary.successful_syncs,
        failed_syncs=summary.failed_syncs,
        total_items_added=summary.total_items_added,
        total_items_updated=summary.total_items_updated,
        synced_at=datetime.now(timezone.utc),
    )


# =============================================================================
# Application state
# =============================================================================


class AppState:
    store: Store
    fetcher: FeedFetcher
    registry: HandlerRegistry
    engine: SyncEngine
    podcasts: PodcastResolver


state = AppState()


def configure_state(store: Store, fetcher: FeedFetcher, config: Config) -> None:
    """Wire the registry, sync engine and resolvers around a store and fetcher."""
    state.store = store
    state.fetcher = fetcher
    state.registry = create_registry(fetcher, config)
    extractor = ReadabilityExtractor(fetcher) if config.extract_full_content else None
    state.engine = SyncEngine(store, state.registry, config, extractor=extractor)
    state.podcasts = PodcastResolver(fetcher, youtube=state.registry.get_handler(SourceKind.YOUTUBE_CHANNEL))


def youtube_handler() -> YouTubeHandler:
    handler = state.registry.get_handler(SourceKind.YOUTUBE_CHANNEL)
    if not isinstance(handler, YouTubeHandler):
        raise HTTPException(status_code=503, detail="YouTube handler not registered")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup application state."""
    config = Config.load()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_state(config.create_store(), config.create_fetcher(), config)

    yield
    await state.fetcher.aclose()
    state.store.close()


def current_user(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity from the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


# =============================================================================
# FastAPI app
# =============================================================================


app = FastAPI(
    title="multifeed API",
    description="Subscribe to feeds, channels and podcasts from any URL",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# Routes: Sources
# =============================================================================


@app.get("/api/sources", response_model=list[SourceResponse])
def list_sources(user_id: str = Depends(current_user)):
    """List the caller's active sources."""
    return [source_response(s) for s in state.store.list_active_sources_for_user(user_id)]


@app.post("/api/sources", response_model=AddSourceResponse)
async def add_source(request: UrlRequest, user_id: str = Depends(current_user)):
    """Resolve a URL to a source and subscribe the caller to it.

    Domain failures (unrecognized URL, Spotify show, unreachable page)
    are reported with success=false, not as HTTP errors.
    """
    result = await state.engine.add_source(request.url, user_id=user_id)
    return AddSourceResponse(
        success=result.success,
        created=result.created,
        kind=result.kind.value if result.kind else None,
        source=source_response(result.source) if result.source else None,
        error=result.error,
        requires_manual_feed=result.requires_manual_feed,
    )


@app.post("/api/sources/detect", response_model=DetectResponse)
async def detect_source(request: UrlRequest, user_id: str = Depends(current_user)):
    """Preview what a URL would be subscribed as, without saving it."""
    result = await state.registry.detect_source_type(request.url)
    return DetectResponse(
        detected=result.detected,
        kind=result.kind.value if result.kind else None,
        handler=result.handler.name if result.handler else None,
        transformed_url=result.transformed_url,
        suggested_title=result.suggested_title,
        supported=result.handler is not None,
        metadata=result.metadata,
    )


# =============================================================================
# Routes: Feeds
# =============================================================================


@app.post("/api/feeds/refresh", response_model=SyncResponse)
async def refresh_feeds(request: SyncRequest | None = None, user_id: str = Depends(current_user)):
    """Sync items from the last day for the caller's sources."""
    source_id = request.source_id if request else None
    try:
        summary = await state.engine.sync_user(user_id, full_sync=False, source_id=source_id)
    except SourceNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return sync_response(summary)


@app.post("/api/feeds/sync-older", response_model=SyncResponse)
async def sync_older(request: SyncRequest | None = None, user_id: str = Depends(current_user)):
    """Sync every item the caller's feeds still carry."""
    source_id = request.source_id if request else None
    try:
        summary = await state.engine.sync_user(user_id, full_sync=True, source_id=source_id)
    except SourceNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return sync_response(summary)


@app.get("/api/feeds/status", response_model=FeedStatusResponse)
def feed_status(user_id: str = Depends(current_user)):
    """Last fetch time and error of each of the caller's sources."""
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=RECENT_FETCH_MINUTES)

    statuses = [
        SourceStatus(
            id=s.id,
            title=s.title,
            kind=s.kind.value,
            last_fetched_at=s.last_fetched_at,
            fetch_error=s.fetch_error,
            fetch_count=s.fetch_count,
            recently_fetched=bool(s.last_fetched_at and s.last_fetched_at >= cutoff),
        )
        for s in state.store.list_active_sources_for_user(user_id)
    ]
    return FeedStatusResponse(
        total_sources=len(statuses),
        recently_fetched=sum(1 for s in statuses if s.recently_fetched),
        with_errors=sum(1 for s in statuses if s.fetch_error),
        sources=statuses,
    )


@app.post("/api/feeds/validate", response_model=ValidateResponse)
async def validate(request: UrlRequest, user_id: str = Depends(current_user)):
    """Check whether a URL serves an RSS/Atom feed, and whether it is a podcast."""
    try:
        response = await state.fetcher.fetch(request.url)
    except NetworkError as e:
        return ValidateResponse(is_rss=False, is_podcast=False, error=str(e))

    if not response.ok:
        return ValidateResponse(
            is_rss=False,
            is_podcast=False,
            final_url=response.final_url,
            error=f"HTTP {response.status}",
        )

    result = validate_feed(response.text, response.content_type)
    return ValidateResponse(**result.to_dict(), final_url=response.final_url)


@app.post("/api/feeds/podcast-info")
async def podcast_info(request: UrlRequest, user_id: str = Depends(current_user)):
    """Resolve a podcast URL on any platform to its RSS feed."""
    result = await state.podcasts.resolve(request.url)
    return result.to_dict()


# =============================================================================
# Routes: YouTube
# =============================================================================


@app.post("/api/youtube/channel-info", response_model=ChannelInfoResponse)
async def channel_info(request: UrlRequest, user_id: str = Depends(current_user)):
    """Scrape a YouTube channel's ID, name, avatar and podcast playlists."""
    if not is_youtube_url(request.url):
        raise HTTPException(status_code=400, detail="Not a YouTube URL")

    info = await youtube_handler().resolve_channel(request.url)
    if info is None:
        raise HTTPException(status_code=404, detail="Could not resolve channel ID")

    return ChannelInfoResponse(
        channel_id=info.channel_id,
        channel_name=info.channel_name,
        channel_description=info.description,
        feed_url=info.feed_url,
        avatar_url=info.avatar_url,
        was_redirected=info.was_redirected,
        original_handle=info.original_handle,
        final_handle=info.final_handle,
        final_url=info.final_url,
        has_podcasts=info.has_podcasts,
        podcast_playlists=[PlaylistResponse(**p.to_dict()) for p in info.podcast_playlists],
    )


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
