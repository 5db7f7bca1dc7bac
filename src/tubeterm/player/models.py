"""Value types shared by the mpv session and the playback orchestrator."""

from dataclasses import dataclass, field, replace
from enum import Enum


class SessionState(str, Enum):
    """Lifecycle of the mpv process + IPC connection."""

    NOT_STARTED = "not_started"
    SPAWNING = "spawning"
    WAITING_SOCKET = "waiting_socket"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class PlaybackStatus(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"
    READY = "ready"


class LoopMode(str, Enum):
    OFF = "off"
    ONE = "one"
    ALL = "all"

    def next_mode(self) -> "LoopMode":
        """Off -> One -> All -> Off."""
        order = [LoopMode.OFF, LoopMode.ONE, LoopMode.ALL]
        return order[(order.index(self) + 1) % len(order)]


@dataclass(frozen=True)
class MediaItem:
    """A single playable video."""

    video_id: str
    title: str = ""
    author: str = ""
    duration: str = ""  # display label, e.g. "3:45"
    thumbnail: str | None = None

    @property
    def url(self) -> str:
        if self.video_id.startswith(("http://", "https://", "/")):
            return self.video_id
        return f"https://www.youtube.com/watch?v={self.video_id}"


@dataclass(frozen=True)
class PlaybackState:
    """Immutable snapshot of the orchestrator's state.

    current_index is -1 when nothing is selected. mpv_ready flips to True
    once mpv has actually started producing output for the current load.
    """

    status: PlaybackStatus = PlaybackStatus.IDLE
    queue: tuple[MediaItem, ...] = field(default_factory=tuple)
    current_index: int = -1
    is_playing: bool = False
    progress: int = 0
    duration: float = 0.0
    loop_mode: LoopMode = LoopMode.OFF
    autoplay: bool = True
    mpv_ready: bool = False
    error: str | None = None

    @property
    def current_item(self) -> MediaItem | None:
        if 0 <= self.current_index < len(self.queue):
            return self.queue[self.current_index]
        return None

    def evolve(self, **changes) -> "PlaybackState":
        return replace(self, **changes)


def format_duration(total_seconds: float | int | None) -> str:
    """Format seconds as M:SS or H:MM:SS."""
    if not total_seconds or total_seconds < 0:
        return "0:00"
    s = int(total_seconds)
    h, remainder = divmod(s, 3600)
    m, sec = divmod(remainder, 60)
    if h > 0:
        return f"{h}:{m:02d}:{sec:02d}"
    return f"{m}:{sec:02d}"
