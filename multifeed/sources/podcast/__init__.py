"""Podcast source handler and multi-platform podcast resolution."""

from multifeed.sources.podcast.handler import PodcastHandler
from multifeed.sources.podcast.platforms import PodcastResolver, detect_podcast_platform, is_podcast_url

__all__ = ["PodcastHandler", "PodcastResolver", "detect_podcast_platform", "is_podcast_url"]
