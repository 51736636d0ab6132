"""YouTube source handler.

Resolves channels, playlists and single videos to YouTube's public
Atom feeds by scraping channel and watch pages. No API key is needed.
"""

from multifeed.sources.youtube.handler import VideoDetails, YouTubeHandler, channel_page_url
from multifeed.sources.youtube.podcasts import detect_channel_podcasts, evaluate_podcasts

__all__ = ["VideoDetails", "YouTubeHandler", "channel_page_url", "detect_channel_podcasts", "evaluate_podcasts"]
