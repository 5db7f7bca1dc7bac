"""In-memory playback queue.

The queue is a plain ordered list of MediaItem. It does not track which item
is playing; the orchestrator owns the current index and passes it in when it
needs a priority insert.
"""

import logging

from tubeterm.player.models import MediaItem

logger = logging.getLogger(__name__)


class MediaQueue:
    """Ordered list of MediaItem with append, priority insert and replace."""

    def __init__(self, items: list[MediaItem] | None = None):
        self._items: list[MediaItem] = list(items or [])

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> MediaItem:
        return self._items[index]

    def __iter__(self):
        return iter(list(self._items))

    def is_empty(self) -> bool:
        return not self._items

    def is_valid_index(self, index: int) -> bool:
        return 0 <= index < len(self._items)

    def append(self, item: MediaItem) -> int:
        """Add an item to the end of the queue. Returns its index."""
        self._items.append(item)
        logger.info("Added to queue: %s", item.title or item.video_id)
        return len(self._items) - 1

    def insert_after(self, current_index: int, item: MediaItem) -> int:
        """Insert an item right after current_index. Returns its index.

        With no current item (-1) this inserts at the head.
        """
        position = max(current_index, -1) + 1
        position = min(position, len(self._items))
        self._items.insert(position, item)
        logger.info("Inserted into queue at %d: %s", position, item.title or item.video_id)
        return position

    def replace(self, items: list[MediaItem]):
        """Replace the whole queue."""
        self._items = list(items)
        logger.info("Queue replaced (%d items)", len(self._items))

    def clear(self):
        """Remove all items."""
        self._items = []

    def items(self) -> tuple[MediaItem, ...]:
        return tuple(self._items)
