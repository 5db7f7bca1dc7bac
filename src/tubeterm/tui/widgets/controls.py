"""Controls bar widget - shows keybindings at the bottom of the screen."""

from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.widget import Widget
from textual.widgets import Label


class ControlsBar(Widget):
    """Displays available keybindings in a compact footer bar."""

    DEFAULT_CSS = """
    ControlsBar {
        dock: bottom;
        height: 2;
        padding: 0 1;
        background: $surface;
    }
    ControlsBar .cb-row {
        height: 1;
        width: 1fr;
    }
    ControlsBar .cb-key {
        text-style: bold;
        color: $accent;
        width: auto;
    }
    ControlsBar .cb-desc {
        color: $text;
        width: auto;
        margin-right: 2;
    }
    """

    def compose(self) -> ComposeResult:
        with Horizontal(classes="cb-row"):
            yield Label("[Space]", classes="cb-key")
            yield Label("Play/Pause", classes="cb-desc")
            yield Label("[N/P]", classes="cb-key")
            yield Label("Next/Prev", classes="cb-desc")
            yield Label("[</>]", classes="cb-key")
            yield Label("Seek", classes="cb-desc")
            yield Label("[A]", classes="cb-key")
            yield Label("Autoplay", classes="cb-desc")
            yield Label("[L]", classes="cb-key")
            yield Label("Loop", classes="cb-desc")
            yield Label("[Q]", classes="cb-key")
            yield Label("Quit", classes="cb-desc")
        with Horizontal(classes="cb-row"):
            yield Label("[/]", classes="cb-key")
            yield Label("Search", classes="cb-desc")
            yield Label("[Enter]", classes="cb-key")
            yield Label("Queue", classes="cb-desc")
            yield Label("[I]", classes="cb-key")
            yield Label("Play next", classes="cb-desc")
            yield Label("[Shift+I]", classes="cb-key")
            yield Label("Play now", classes="cb-desc")
            yield Label("[C]", classes="cb-key")
            yield Label("Clear", classes="cb-desc")
            yield Label("[R]", classes="cb-key")
            yield Label("Restart mpv", classes="cb-desc")
