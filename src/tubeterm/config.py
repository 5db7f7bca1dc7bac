"""Configuration loader for tubeterm."""

import os
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path


def default_socket_path() -> str:
    """One IPC socket per tubeterm process, in the system temp dir."""
    return os.path.join(tempfile.gettempdir(), f"tubeterm-mpv-{os.getpid()}.sock")


@dataclass
class PlayerConfig:
    """Configuration for the mpv session and playback behaviour."""

    mpv_binary: str = "mpv"
    socket_path: str = ""
    startup_timeout: float = 5.0         # seconds to wait for the IPC socket
    socket_poll_interval: float = 0.1
    connect_attempts: int = 5
    connect_delay: float = 1.0           # seconds between connect attempts
    command_timeout: float = 10.0        # seconds to wait for a reply
    quit_timeout: float = 3.0
    ytdl_format: str = "bestaudio/best"
    extra_args: list[str] = field(default_factory=list)
    autoplay: bool = True
    seek_step: int = 5

    def __post_init__(self):
        if not self.socket_path:
            self.socket_path = default_socket_path()


@dataclass
class SearchConfig:
    """Configuration for yt-dlp backed search and playlist lookups."""

    limit: int = 15
    ytdl_binary: str = "yt-dlp"
    timeout: int = 30
    cookies_from_browser: str = ""  # e.g. "firefox"
    suggestions: bool = True        # autocomplete in the search box


@dataclass
class LoggingConfig:
    """Where log output goes. The TUI owns the terminal, so default to a file."""

    level: str = "INFO"
    file: str = ""

    def __post_init__(self):
        if not self.file:
            self.file = os.path.expanduser("~/.tubeterm/tubeterm.log")


@dataclass
class Config:
    """Top-level tubeterm configuration."""

    player: PlayerConfig = field(default_factory=PlayerConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None = None) -> Config:
    """Load configuration from tubeterm.toml.

    Search order:
    1. Explicit path argument
    2. ./tubeterm.toml
    3. ~/.config/tubeterm/tubeterm.toml
    4. Defaults
    """
    search_paths = []
    if path:
        search_paths.append(Path(path))
    search_paths.extend([
        Path("tubeterm.toml"),
        Path.home() / ".config" / "tubeterm" / "tubeterm.toml",
    ])

    for p in search_paths:
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            return _parse_config(data)

    return Config()


def _parse_config(data: dict) -> Config:
    """Parse a TOML dict into Config."""
    config = Config()

    if "player" in data:
        p = data["player"]
        defaults = config.player
        config.player = PlayerConfig(
            mpv_binary=p.get("mpv_binary", defaults.mpv_binary),
            socket_path=p.get("socket_path", defaults.socket_path),
            startup_timeout=p.get("startup_timeout", defaults.startup_timeout),
            socket_poll_interval=p.get("socket_poll_interval", defaults.socket_poll_interval),
            connect_attempts=p.get("connect_attempts", defaults.connect_attempts),
            connect_delay=p.get("connect_delay", defaults.connect_delay),
            command_timeout=p.get("command_timeout", defaults.command_timeout),
            quit_timeout=p.get("quit_timeout", defaults.quit_timeout),
            ytdl_format=p.get("ytdl_format", defaults.ytdl_format),
            extra_args=list(p.get("extra_args", defaults.extra_args)),
            autoplay=p.get("autoplay", defaults.autoplay),
            seek_step=p.get("seek_step", defaults.seek_step),
        )

    if "search" in data:
        s = data["search"]
        config.search = SearchConfig(
            limit=s.get("limit", config.search.limit),
            ytdl_binary=s.get("ytdl_binary", config.search.ytdl_binary),
            timeout=s.get("timeout", config.search.timeout),
            cookies_from_browser=s.get("cookies_from_browser", config.search.cookies_from_browser),
            suggestions=s.get("suggestions", config.search.suggestions),
        )

    if "logging" in data:
        lg = data["logging"]
        config.logging = LoggingConfig(
            level=str(lg.get("level", config.logging.level)).upper(),
            file=lg.get("file", config.logging.file),
        )

    return config


def ytdl_auth_args(config: SearchConfig) -> list[str]:
    """Build yt-dlp auth arguments from config."""
    if config.cookies_from_browser:
        return [f"--cookies-from-browser={config.cookies_from_browser}"]
    return []
