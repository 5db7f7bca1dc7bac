"""Now Playing widget - shows current track info, progress bar and modes."""

from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.widget import Widget
from textual.widgets import Label, ProgressBar

from tubeterm.player.models import LoopMode, PlaybackState, PlaybackStatus, format_duration

STATUS_TEXT = {
    PlaybackStatus.IDLE: "Nothing playing - press [bold]/[/bold] to search",
    PlaybackStatus.INITIALIZING: "Starting mpv...",
    PlaybackStatus.READY: "Ready - press [bold]/[/bold] to search",
    PlaybackStatus.ENDED: "Playback ended",
}

LOOP_LABELS = {
    LoopMode.OFF: "Loop: off",
    LoopMode.ONE: "Loop: one",
    LoopMode.ALL: "Loop: all",
}


class NowPlaying(Widget):
    """Displays the current item with progress, autoplay and loop mode."""

    DEFAULT_CSS = """
    NowPlaying {
        height: auto;
        padding: 0 1;
    }
    NowPlaying .np-title {
        text-style: bold;
        width: 1fr;
    }
    NowPlaying .np-author {
        color: $text-muted;
        width: 1fr;
    }
    NowPlaying .np-progress-row {
        height: 1;
        margin-top: 1;
    }
    NowPlaying .np-time {
        width: auto;
        min-width: 14;
        text-align: right;
        margin-left: 1;
    }
    NowPlaying .np-bar {
        width: 1fr;
    }
    NowPlaying .np-meta-row {
        height: 1;
    }
    NowPlaying .np-autoplay {
        width: auto;
        min-width: 14;
    }
    NowPlaying .np-loop {
        width: auto;
        min-width: 12;
        margin-left: 2;
    }
    NowPlaying .np-status {
        text-style: italic;
        color: $text-muted;
        width: 1fr;
    }
    NowPlaying .np-error {
        color: $error;
    }
    """

    def compose(self) -> ComposeResult:
        yield Label(STATUS_TEXT[PlaybackStatus.IDLE], id="np-status", classes="np-status")
        yield Label("", id="np-title", classes="np-title")
        yield Label("", id="np-author", classes="np-author")
        with Horizontal(classes="np-progress-row"):
            yield ProgressBar(total=100, show_eta=False, show_percentage=False, id="np-bar", classes="np-bar")
            yield Label("0:00 / 0:00", id="np-time", classes="np-time")
        with Horizontal(classes="np-meta-row"):
            yield Label("Autoplay: on", id="np-autoplay", classes="np-autoplay")
            yield Label(LOOP_LABELS[LoopMode.OFF], id="np-loop", classes="np-loop")

    def update_state(self, state: PlaybackState) -> None:
        """Render a PlaybackState snapshot."""
        status_label = self.query_one("#np-status", Label)
        item = state.current_item

        if state.status == PlaybackStatus.ERROR:
            status_label.update(f"Player error: {state.error} - press [bold]R[/bold] to restart")
            status_label.add_class("np-error")
        else:
            status_label.remove_class("np-error")
            status_label.update(STATUS_TEXT.get(state.status, ""))
        status_label.display = item is None or state.status == PlaybackStatus.ERROR

        if item is not None:
            if state.status == PlaybackStatus.LOADING:
                icon = ".. "
            else:
                icon = ">> " if state.is_playing else "|| "
            self.query_one("#np-title", Label).update(f"{icon}{item.title or item.video_id}")
            self.query_one("#np-author", Label).update(item.author)
        else:
            self.query_one("#np-title", Label).update("")
            self.query_one("#np-author", Label).update("")

        bar = self.query_one("#np-bar", ProgressBar)
        if state.duration > 0:
            bar.update(progress=min(100, (state.progress / state.duration) * 100))
        else:
            bar.update(progress=0)
        self.query_one("#np-time", Label).update(
            f"{format_duration(state.progress)} / {format_duration(state.duration)}"
        )
        self.query_one("#np-autoplay", Label).update(f"Autoplay: {'on' if state.autoplay else 'off'}")
        self.query_one("#np-loop", Label).update(LOOP_LABELS[state.loop_mode])
