"""Search results widget."""

from textual.app import ComposeResult
from textual.widget import Widget
from textual.widgets import Label, ListItem, ListView

from tubeterm.player.models import MediaItem


class ResultsList(Widget):
    """Displays search or playlist results for selection."""

    DEFAULT_CSS = """
    ResultsList {
        height: 1fr;
        padding: 0 1;
    }
    ResultsList .rl-header {
        text-style: bold;
        height: 1;
    }
    ResultsList ListView {
        height: 1fr;
    }
    ResultsList ListItem {
        height: 2;
        padding: 0 1;
    }
    ResultsList .rl-author {
        color: $text-muted;
    }
    ResultsList .rl-empty {
        text-style: italic;
        color: $text-muted;
        text-align: center;
        margin: 1 0;
    }
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._results: list[MediaItem] = []

    def compose(self) -> ComposeResult:
        yield Label("Results", id="rl-header", classes="rl-header")
        yield ListView(id="rl-list")
        yield Label("No results", id="rl-empty", classes="rl-empty")

    def show_message(self, text: str) -> None:
        self.query_one("#rl-empty", Label).update(text)
        self.query_one("#rl-empty", Label).display = True
        self.query_one("#rl-list", ListView).display = False

    def update_results(self, header: str, results: list[MediaItem]) -> None:
        self._results = list(results)
        self.query_one("#rl-header", Label).update(f"{header} ({len(results)})")
        listview = self.query_one("#rl-list", ListView)
        listview.clear()
        if not results:
            self.show_message("No results found")
            return
        self.query_one("#rl-empty", Label).display = False
        listview.display = True
        for item in results:
            listview.append(ListItem(
                Label(f"{item.title}  [{item.duration}]"),
                Label(item.author, classes="rl-author"),
            ))
        listview.index = 0
        listview.focus()

    @property
    def results(self) -> list[MediaItem]:
        return list(self._results)

    def get_selected(self) -> MediaItem | None:
        listview = self.query_one("#rl-list", ListView)
        if listview.index is not None and listview.index < len(self._results):
            return self._results[listview.index]
        return None
