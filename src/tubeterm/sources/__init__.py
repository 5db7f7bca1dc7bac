"""Content sources for tubeterm.

Sources turn a search query or playlist identifier into an ordered list of
MediaItem for the playback queue. SuggestionSource completes partially
typed queries.
"""

from tubeterm.sources.suggest import SuggestionSource
from tubeterm.sources.youtube import YouTubeSource, playlist_id_from_url

__all__ = [
    "SuggestionSource",
    "YouTubeSource",
    "playlist_id_from_url",
]
