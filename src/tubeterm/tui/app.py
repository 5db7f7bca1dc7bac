"""tubeterm TUI - Textual terminal player.

Key presses call into the PlaybackOrchestrator from thread workers, since
orchestrator calls block on mpv replies. State changes come back as
StateChanged messages, which Textual lets us post from any thread.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.message import Message
from textual.screen import ModalScreen
from textual.widgets import Header, Input, Label, ListView, OptionList

from tubeterm.player.models import MediaItem, PlaybackState
from tubeterm.sources.youtube import playlist_id_from_url
from tubeterm.tui.widgets.controls import ControlsBar
from tubeterm.tui.widgets.now_playing import NowPlaying
from tubeterm.tui.widgets.queue_list import QueueList
from tubeterm.tui.widgets.results_list import ResultsList

if TYPE_CHECKING:
    from textual.timer import Timer

    from tubeterm.player.orchestrator import PlaybackOrchestrator
    from tubeterm.sources.suggest import SuggestionSource
    from tubeterm.sources.youtube import YouTubeSource

logger = logging.getLogger(__name__)

# Seconds of typing pause before suggestions are fetched
SUGGEST_DELAY = 0.4


class SearchScreen(ModalScreen[str | None]):
    """Modal screen for a search query or playlist URL.

    With a suggestion source, typing pauses for `delay` seconds before
    completions are fetched; up/down pick one and enter searches it.
    """

    DEFAULT_CSS = """
    SearchScreen {
        align: center middle;
    }
    SearchScreen > Container {
        width: 70;
        height: auto;
        max-height: 16;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }
    SearchScreen Label {
        margin-bottom: 1;
    }
    SearchScreen OptionList {
        height: auto;
        max-height: 8;
        margin-top: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("down", "suggestion_down", show=False),
        Binding("up", "suggestion_up", show=False),
    ]

    def __init__(
        self,
        suggestions: "SuggestionSource | None" = None,
        delay: float = SUGGEST_DELAY,
    ):
        super().__init__()
        self._suggestion_source = suggestions
        self._suggest_delay = delay
        self._suggest_timer: Timer | None = None
        self._suggestions: list[str] = []

    def compose(self) -> ComposeResult:
        with Container():
            yield Label("Search YouTube (or paste a playlist URL):")
            yield Input(placeholder="lofi hip hop", id="search-input")
            yield OptionList(id="search-suggestions")

    def on_mount(self) -> None:
        self.query_one("#search-suggestions", OptionList).display = False
        self.query_one("#search-input", Input).focus()

    def on_input_changed(self, event: Input.Changed) -> None:
        if self._suggestion_source is None:
            return
        if self._suggest_timer is not None:
            self._suggest_timer.stop()
            self._suggest_timer = None
        if not event.value.strip():
            self._show_suggestions("", [])
            return
        self._suggest_timer = self.set_timer(self._suggest_delay, self._request_suggestions)

    def _request_suggestions(self) -> None:
        self._suggest_timer = None
        query = self.query_one("#search-input", Input).value.strip()
        if query:
            self._fetch_suggestions(query)

    @work(thread=True, exclusive=True, group="suggest")
    def _fetch_suggestions(self, query: str) -> None:
        results = self._suggestion_source.suggest(query)
        self.app.call_from_thread(self._show_suggestions, query, results)

    def _show_suggestions(self, query: str, results: list[str]) -> None:
        # A reply for text the user has since changed
        if query and query != self.query_one("#search-input", Input).value.strip():
            return
        self._suggestions = list(results)
        option_list = self.query_one("#search-suggestions", OptionList)
        option_list.clear_options()
        option_list.add_options(self._suggestions)
        option_list.highlighted = None
        option_list.display = bool(self._suggestions)

    def _move_highlight(self, step: int) -> None:
        if not self._suggestions:
            return
        option_list = self.query_one("#search-suggestions", OptionList)
        current = option_list.highlighted
        if current is None:
            index = 0 if step > 0 else len(self._suggestions) - 1
        else:
            index = max(0, min(len(self._suggestions) - 1, current + step))
        option_list.highlighted = index

    def action_suggestion_down(self) -> None:
        self._move_highlight(1)

    def action_suggestion_up(self) -> None:
        self._move_highlight(-1)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        highlighted = self.query_one("#search-suggestions", OptionList).highlighted
        if self._suggestions and highlighted is not None:
            self.dismiss(self._suggestions[highlighted])
            return
        query = event.value.strip()
        self.dismiss(query if query else None)

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(self._suggestions[event.option_index])

    def action_cancel(self) -> None:
        self.dismiss(None)


class StateChanged(Message):
    """Posted whenever the orchestrator publishes a new state snapshot."""

    def __init__(self, state: PlaybackState) -> None:
        super().__init__()
        self.state = state


class TubeTermApp(App):
    """tubeterm terminal UI."""

    TITLE = "tubeterm"

    DEFAULT_CSS = """
    #main {
        height: 1fr;
    }
    ResultsList {
        height: 2fr;
    }
    QueueList {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("space", "toggle_pause", "Play/Pause", show=False),
        Binding("n", "next", "Next", show=False),
        Binding("p", "previous", "Previous", show=False),
        Binding("right,greater_than_sign,period", "seek_forward", "Seek+", show=False),
        Binding("left,less_than_sign,comma", "seek_back", "Seek-", show=False),
        Binding("a", "toggle_autoplay", "Autoplay", show=False),
        Binding("l", "cycle_loop", "Loop", show=False),
        Binding("slash", "search", "Search", show=False),
        Binding("i", "enqueue_next", "Play next", show=False),
        Binding("I", "play_now", "Play now", show=False),
        Binding("c", "clear_queue", "Clear", show=False),
        Binding("r", "reinitialize", "Restart", show=False),
        Binding("q", "quit_app", "Quit", show=False),
    ]

    def __init__(
        self,
        orchestrator: "PlaybackOrchestrator",
        source: "YouTubeSource",
        seek_step: int = 5,
        initial_query: str | None = None,
        initial_playlist: str | None = None,
        suggestions: "SuggestionSource | None" = None,
        suggest_delay: float = SUGGEST_DELAY,
    ):
        super().__init__()
        self.orchestrator = orchestrator
        self.source = source
        self.suggestions = suggestions
        self.suggest_delay = suggest_delay
        self.seek_step = seek_step
        self._initial_query = initial_query
        self._initial_playlist = initial_playlist
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="main"):
            yield NowPlaying()
            yield ResultsList()
            yield QueueList()
        yield ControlsBar()

    def on_mount(self) -> None:
        self._unsubscribe = self.orchestrator.subscribe(
            lambda state: self.post_message(StateChanged(state))
        )
        self._render_state(self.orchestrator.state)
        self._start()

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def on_state_changed(self, message: StateChanged) -> None:
        self._render_state(message.state)

    def _render_state(self, state: PlaybackState) -> None:
        self.query_one(NowPlaying).update_state(state)
        self.query_one(QueueList).update_queue(state.queue, state.current_index)
        self.sub_title = state.status.value

    @work(thread=True, exclusive=True, group="startup")
    def _start(self) -> None:
        if not self.orchestrator.initialize():
            return
        if self._initial_playlist:
            self._load_playlist(self._initial_playlist)
        elif self._initial_query:
            self._search(self._initial_query)

    # --- workers ---

    @work(thread=True, group="command")
    def _run_command(self, command: Callable[[], object]) -> None:
        try:
            command()
        except Exception as e:
            logger.exception("Player command failed")
            self.call_from_thread(self.notify, f"Error: {e}", severity="error", timeout=3)

    def _search(self, query: str) -> None:
        """Blocking; call from a thread worker."""
        self.call_from_thread(self.query_one(ResultsList).show_message, f"Searching for {query!r}...")
        results = self.source.search(query)
        self.call_from_thread(self.query_one(ResultsList).update_results, f"Results for {query!r}", results)

    def _load_playlist(self, playlist: str) -> None:
        """Blocking; call from a thread worker."""
        self.call_from_thread(self.query_one(ResultsList).show_message, "Loading playlist...")
        items = self.source.playlist_items(playlist)
        self.call_from_thread(self.query_one(ResultsList).update_results, "Playlist", items)
        if items:
            self.orchestrator.set_queue(items, 0)
        else:
            self.call_from_thread(self.notify, "Playlist is empty or unavailable", severity="warning", timeout=3)

    @work(thread=True, exclusive=True, group="lookup")
    def _lookup(self, text: str) -> None:
        if playlist_id_from_url(text):
            self._load_playlist(text)
        else:
            self._search(text)

    # --- actions ---

    def action_search(self) -> None:
        self.push_screen(
            SearchScreen(self.suggestions, delay=self.suggest_delay),
            self._on_search_submitted,
        )

    def _on_search_submitted(self, query: str | None) -> None:
        if query:
            self._lookup(query)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        if self.query_one(ResultsList).query_one("#rl-list") is event.list_view:
            self._enqueue_selected(priority=False, play_now=False)

    def _enqueue_selected(self, priority: bool, play_now: bool) -> None:
        item: MediaItem | None = self.query_one(ResultsList).get_selected()
        if item is None:
            return
        self._run_command(lambda: self.orchestrator.enqueue(item, priority=priority, play_now=play_now))
        self.notify(f"Queued: {item.title}", timeout=2)

    def action_enqueue_next(self) -> None:
        self._enqueue_selected(priority=True, play_now=False)

    def action_play_now(self) -> None:
        self._enqueue_selected(priority=True, play_now=True)

    def action_toggle_pause(self) -> None:
        self._run_command(self.orchestrator.toggle_play_pause)

    def action_next(self) -> None:
        self._run_command(self.orchestrator.next)

    def action_previous(self) -> None:
        self._run_command(self.orchestrator.previous)

    def action_seek_forward(self) -> None:
        self._run_command(lambda: self.orchestrator.seek(self.seek_step))

    def action_seek_back(self) -> None:
        self._run_command(lambda: self.orchestrator.seek(-self.seek_step))

    def action_toggle_autoplay(self) -> None:
        self._run_command(self.orchestrator.toggle_autoplay)

    def action_cycle_loop(self) -> None:
        self._run_command(self.orchestrator.cycle_loop_mode)

    def action_clear_queue(self) -> None:
        self._run_command(self.orchestrator.clear_queue)

    def action_reinitialize(self) -> None:
        self._run_command(self.orchestrator.initialize)

    def action_quit_app(self) -> None:
        self.exit()
