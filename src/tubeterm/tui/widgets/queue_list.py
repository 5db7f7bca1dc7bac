"""Queue list widget - displays the playback queue and the current item."""

from textual.app import ComposeResult
from textual.widget import Widget
from textual.widgets import Label, ListItem, ListView

from tubeterm.player.models import MediaItem


def format_queue_line(index: int, item: MediaItem, current_index: int) -> str:
    icon = ">>" if index == current_index else "ok" if index < current_index else "  "
    title = item.title or item.video_id
    max_len = 50
    if len(title) > max_len:
        title = title[:max_len - 3] + "..."
    return f"{index + 1:2d}. {icon} {title}  {item.duration}"


class QueueList(Widget):
    """Displays the playback queue."""

    DEFAULT_CSS = """
    QueueList {
        height: 1fr;
        padding: 0 1;
    }
    QueueList .ql-header {
        text-style: bold;
        height: 1;
    }
    QueueList ListView {
        height: 1fr;
    }
    QueueList ListItem {
        height: 1;
        padding: 0 1;
    }
    QueueList .ql-empty {
        text-style: italic;
        color: $text-muted;
        text-align: center;
        margin: 1 0;
    }
    QueueList ListItem.playing {
        background: $primary-background;
    }
    QueueList ListItem.played {
        color: $text-muted;
    }
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._items: tuple[MediaItem, ...] = ()
        self._current_index = -1

    def compose(self) -> ComposeResult:
        yield Label("Queue (0)", id="ql-header", classes="ql-header")
        yield ListView(id="ql-list")
        yield Label("Queue is empty", id="ql-empty", classes="ql-empty")

    def on_mount(self) -> None:
        self.query_one("#ql-list", ListView).display = False

    def update_queue(self, items: tuple[MediaItem, ...], current_index: int) -> None:
        if items == self._items and current_index == self._current_index:
            return
        self._items = items
        self._current_index = current_index

        listview = self.query_one("#ql-list", ListView)
        empty_label = self.query_one("#ql-empty", Label)
        self.query_one("#ql-header", Label).update(f"Queue ({len(items)})")

        listview.clear()
        if not items:
            empty_label.display = True
            listview.display = False
            return

        empty_label.display = False
        listview.display = True
        for idx, item in enumerate(items):
            li = ListItem(Label(format_queue_line(idx, item, current_index)))
            if idx == current_index:
                li.add_class("playing")
            elif idx < current_index:
                li.add_class("played")
            listview.append(li)
