"""YouTube search and playlist lookups using yt-dlp."""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlparse

from tubeterm.player.models import MediaItem, format_duration

if TYPE_CHECKING:
    from tubeterm.config import SearchConfig

logger = logging.getLogger(__name__)

# One entry per line: id, title, channel, duration (seconds)
PRINT_FORMAT = "%(id)s\t%(title)s\t%(channel,uploader|)s\t%(duration|)s"


def thumbnail_url(video_id: str) -> str:
    return f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"


def playlist_id_from_url(url: str) -> str | None:
    """Return the list= parameter of a YouTube URL, or None."""
    try:
        parsed = urlparse(url)
        ids = parse_qs(parsed.query).get("list", [])
        return ids[0] if ids else None
    except ValueError:
        return None


def parse_entries(output: str) -> list[MediaItem]:
    """Parse yt-dlp --print output (see PRINT_FORMAT) into MediaItems."""
    items = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        video_id = parts[0].strip()
        if not video_id or video_id == "NA":
            continue
        title = parts[1].strip() if len(parts) > 1 else ""
        author = parts[2].strip() if len(parts) > 2 else ""
        raw_duration = parts[3].strip() if len(parts) > 3 else ""
        try:
            seconds = float(raw_duration) if raw_duration not in ("", "NA") else 0
        except ValueError:
            seconds = 0
        items.append(MediaItem(
            video_id=video_id,
            title=title if title != "NA" else "",
            author=author if author != "NA" else "",
            duration=format_duration(seconds),
            thumbnail=thumbnail_url(video_id),
        ))
    return items


class YouTubeSource:
    """Search provider and playlist resolver backed by the yt-dlp CLI."""

    def __init__(self, config: "SearchConfig | None" = None):
        if config is None:
            from tubeterm.config import SearchConfig
            config = SearchConfig()
        self._config = config

    def _auth_args(self) -> list[str]:
        from tubeterm.config import ytdl_auth_args
        return ytdl_auth_args(self._config)

    def _run(self, target: str) -> str | None:
        try:
            result = subprocess.run(
                [
                    self._config.ytdl_binary,
                    "--flat-playlist",
                    "--no-warnings",
                    "--print", PRINT_FORMAT,
                    *self._auth_args(),
                    target,
                ],
                capture_output=True,
                text=True,
                timeout=self._config.timeout,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
            logger.warning("yt-dlp lookup failed for %s: %s", target, e)
            return None
        if result.returncode != 0:
            logger.warning("yt-dlp lookup failed for %s: %s", target, result.stderr.strip())
            return None
        return result.stdout

    def search(self, query: str, limit: int | None = None) -> list[MediaItem]:
        """Search YouTube. Returns [] on failure."""
        query = query.strip()
        if not query:
            return []
        limit = limit or self._config.limit
        output = self._run(f"ytsearch{limit}:{query}")
        if output is None:
            return []
        items = parse_entries(output)
        logger.info("Search %r returned %d results", query, len(items))
        return items

    def playlist_items(self, playlist: str) -> list[MediaItem]:
        """Resolve a playlist ID or playlist URL into its videos, in order."""
        playlist_id = playlist_id_from_url(playlist) if playlist.startswith("http") else playlist
        if not playlist_id:
            logger.warning("No playlist id in %s", playlist)
            return []
        output = self._run(f"https://www.youtube.com/playlist?list={playlist_id}")
        if output is None:
            return []
        items = parse_entries(output)
        logger.info("Playlist %s has %d videos", playlist_id, len(items))
        return items
