"""Playback orchestration - the queue/playback state machine on top of mpv.

User-driven calls (from the TUI's worker threads) and mpv events (from the
IPC dispatcher thread) both mutate the same state, so every public method
and every event handler runs under one re-entrant lock. Handlers for events
delegate to the public methods (playback-ended -> next()), which is why the
lock must be re-entrant.

State transitions:

    Idle -> Initializing -> Ready | Error
    Ready/Ended/Playing/Paused -> Loading -> Playing | Error
    Playing <-> Paused
    Playing/Paused -> Ended   (queue exhausted, or track end without autoplay)
"""

from __future__ import annotations

import logging
import math
import threading
from typing import TYPE_CHECKING, Callable

from tubeterm.player.models import LoopMode, MediaItem, PlaybackState, PlaybackStatus
from tubeterm.player.mpv_client import END_OF_STREAM_PROPERTY, PLAYBACK_ENDED, MPVError
from tubeterm.player.queue_manager import MediaQueue

if TYPE_CHECKING:
    from tubeterm.player.mpv_client import IPCChannel
    from tubeterm.player.process import ProcessSupervisor

logger = logging.getLogger(__name__)

POSITION_PROPERTY = "time-pos"
DURATION_PROPERTY = "duration"
PAUSE_PROPERTY = "pause"
OBSERVED_PROPERTIES = (POSITION_PROPERTY, DURATION_PROPERTY, PAUSE_PROPERTY, END_OF_STREAM_PROPERTY)

# Statuses in which something is loaded in mpv
ACTIVE_STATUSES = (PlaybackStatus.LOADING, PlaybackStatus.PLAYING, PlaybackStatus.PAUSED)

Listener = Callable[[PlaybackState], None]


class PlaybackOrchestrator:
    """Owns the queue and playback state and drives mpv through the channel.

    Listeners registered with subscribe() get a PlaybackState snapshot after
    every change. They are called with the state lock held, from whichever
    thread made the change, so they must not block.
    """

    def __init__(
        self,
        supervisor: "ProcessSupervisor",
        channel: "IPCChannel",
        autoplay: bool = True,
    ):
        self._supervisor = supervisor
        self._channel = channel
        self._lock = threading.RLock()
        self._queue = MediaQueue()
        self._state = PlaybackState(autoplay=autoplay)
        self._initialized = False
        self._event_unsubscribers: list[Callable[[], None]] = []
        self._listeners: list[Listener] = []
        self._listeners_lock = threading.Lock()

    # --- state access -----------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        """A snapshot of the current state, including the queue."""
        with self._lock:
            return self._state.evolve(queue=self._queue.items())

    @property
    def status(self) -> PlaybackStatus:
        return self._state.status

    @property
    def current_index(self) -> int:
        return self._state.current_index

    @property
    def queue(self) -> tuple[MediaItem, ...]:
        return self._queue.items()

    @property
    def is_playing(self) -> bool:
        return self._state.is_playing

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener. Returns an unsubscribe function."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._listeners_lock:
                try:
                    self._listeners.remove(listener)
                except ValueError:
                    pass

        return unsubscribe

    def _set(self, **changes):
        self._state = self._state.evolve(**changes)
        self._notify()

    def _notify(self):
        snapshot = self._state.evolve(queue=self._queue.items())
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Playback state listener failed")

    def _blocked(self, action: str) -> bool:
        if self._state.status == PlaybackStatus.ERROR:
            logger.info("Ignoring %s: player is in error state (%s)", action, self._state.error)
            return True
        return False

    # --- lifecycle --------------------------------------------------------

    def initialize(self) -> bool:
        """Start mpv, subscribe to its events and observe playback properties.

        A no-op once initialized, unless the player is in the error state, in
        which case it retries from scratch. Returns True when ready.
        """
        with self._lock:
            if self._initialized and self._state.status != PlaybackStatus.ERROR:
                return True
            self._set(status=PlaybackStatus.INITIALIZING, error=None)
            try:
                self._supervisor.start()
                self._subscribe_events()
                for name in OBSERVED_PROPERTIES:
                    self._channel.observe(name)
            except MPVError as e:
                logger.error("Player initialization failed: %s", e)
                self._initialized = False
                self._set(status=PlaybackStatus.ERROR, error=str(e), is_playing=False)
                return False
            self._initialized = True
            self._set(status=PlaybackStatus.READY)
            logger.info("Player ready")
            return True

    def _subscribe_events(self):
        self._unsubscribe_events()
        self._event_unsubscribers = [
            self._channel.subscribe("property-change", self._on_property_change),
            self._channel.subscribe(PLAYBACK_ENDED, self._on_playback_ended),
            self._channel.subscribe("file-loaded", self._on_file_loaded),
        ]

    def _unsubscribe_events(self):
        for unsubscribe in self._event_unsubscribers:
            unsubscribe()
        self._event_unsubscribers = []

    def shutdown(self):
        """Detach from mpv events and tear the mpv session down."""
        with self._lock:
            self._unsubscribe_events()
            self._initialized = False
        self._supervisor.quit()
        self._channel.close()

    # --- playback ---------------------------------------------------------

    def load_by_index(self, index: int) -> bool:
        """Load and play the queue item at index. Returns True on success."""
        with self._lock:
            if not self._queue.is_valid_index(index):
                raise IndexError(f"queue index out of range: {index}")
            if self._blocked("load"):
                return False
            if not self._initialized and not self.initialize():
                return False

            item = self._queue[index]
            self._set(
                status=PlaybackStatus.LOADING,
                current_index=index,
                progress=0,
                duration=0.0,
                mpv_ready=False,
            )
            logger.info("Loading [%d] %s", index, item.title or item.video_id)
            try:
                self._channel.stop()
                self._channel.load(item.url)
                # keep-open pauses mpv at end of file; a new load must play
                self._channel.resume()
            except MPVError as e:
                logger.error("Failed to load %s: %s", item.url, e)
                self._set(status=PlaybackStatus.ERROR, error=str(e), is_playing=False)
                return False
            self._set(status=PlaybackStatus.PLAYING, is_playing=True, error=None)
            return True

    def play(self):
        """Resume, restart an ended item, or start the queue from the top."""
        with self._lock:
            if self._blocked("play"):
                return
            status = self._state.status
            current = self._state.current_index
            if status == PlaybackStatus.PAUSED:
                try:
                    self._channel.resume()
                except MPVError as e:
                    logger.warning("Resume failed: %s", e)
                    return
                self._set(status=PlaybackStatus.PLAYING, is_playing=True)
            elif status == PlaybackStatus.ENDED and self._queue.is_valid_index(current):
                self.load_by_index(current)
            elif current == -1 and not self._queue.is_empty():
                self.load_by_index(0)

    def pause(self):
        with self._lock:
            if self._blocked("pause"):
                return
            if not self._queue.is_valid_index(self._state.current_index):
                return
            try:
                self._channel.pause()
            except MPVError as e:
                logger.warning("Pause failed: %s", e)
                return
            self._set(status=PlaybackStatus.PAUSED, is_playing=False)

    def toggle_play_pause(self):
        with self._lock:
            if self._state.is_playing:
                self.pause()
            else:
                self.play()

    def next(self):
        """Advance to the next item; end playback when the queue runs out."""
        with self._lock:
            if self._blocked("next") or self._queue.is_empty():
                return
            next_index = self._state.current_index + 1
            if self._queue.is_valid_index(next_index):
                self.load_by_index(next_index)
                return
            logger.info("Queue exhausted")
            self._set(
                status=PlaybackStatus.ENDED,
                current_index=-1,
                is_playing=False,
                mpv_ready=False,
            )
            try:
                self._channel.stop()
            except MPVError as e:
                logger.warning("Stop failed: %s", e)

    def previous(self):
        """Go back one item. On the first item, restart it instead."""
        with self._lock:
            if self._blocked("previous") or self._queue.is_empty():
                return
            current = self._state.current_index
            if current == 0:
                try:
                    self._channel.seek(0, "absolute")
                except MPVError as e:
                    logger.warning("Seek to start failed: %s", e)
                return
            if current > 0:
                self.load_by_index(current - 1)

    def seek(self, delta_seconds: float):
        """Relative seek. Ignored until mpv has actually started the item."""
        with self._lock:
            if self._blocked("seek"):
                return
            if not self._state.mpv_ready:
                logger.debug("Ignoring seek before mpv is ready")
                return
            try:
                self._channel.seek(delta_seconds, "relative")
            except MPVError as e:
                logger.warning("Seek failed: %s", e)

    def toggle_autoplay(self) -> bool:
        with self._lock:
            self._set(autoplay=not self._state.autoplay)
            return self._state.autoplay

    def cycle_loop_mode(self) -> LoopMode:
        with self._lock:
            self._set(loop_mode=self._state.loop_mode.next_mode())
            return self._state.loop_mode

    # --- queue ------------------------------------------------------------

    def enqueue(self, item: MediaItem, priority: bool = False, play_now: bool = False):
        """Add an item to the queue.

        Nothing loaded: append and play it. Otherwise append to the tail, or
        with priority insert right after the current item, and with play_now
        also switch to it immediately.
        """
        with self._lock:
            if self._state.status not in ACTIVE_STATUSES:
                index = self._queue.append(item)
                self._notify()
                self.load_by_index(index)
                return
            if not priority:
                self._queue.append(item)
                self._notify()
                return
            index = self._queue.insert_after(self._state.current_index, item)
            self._notify()
            if play_now:
                self.load_by_index(index)

    def set_queue(self, items: list[MediaItem], start_index: int = 0):
        """Replace the queue. A valid start_index starts playing that item."""
        with self._lock:
            self._queue.replace(items)
            if self._queue.is_valid_index(start_index):
                self._set(current_index=-1)
                self.load_by_index(start_index)
                return
            changes = {"current_index": -1}
            if self._state.status in ACTIVE_STATUSES:
                try:
                    self._channel.stop()
                except MPVError as e:
                    logger.warning("Stop failed: %s", e)
                changes.update(
                    status=PlaybackStatus.READY, is_playing=False, progress=0,
                    duration=0.0, mpv_ready=False,
                )
            self._set(**changes)

    def clear_queue(self):
        """Stop playback and empty the queue."""
        with self._lock:
            try:
                self._channel.stop()
            except MPVError as e:
                logger.debug("Stop on clear failed: %s", e)
            self._queue.clear()
            status = PlaybackStatus.ERROR if self._state.status == PlaybackStatus.ERROR else PlaybackStatus.IDLE
            self._set(
                status=status,
                current_index=-1,
                is_playing=False,
                progress=0,
                duration=0.0,
                mpv_ready=False,
            )

    # --- mpv events -------------------------------------------------------

    def _on_property_change(self, msg: dict):
        name = msg.get("name")
        data = msg.get("data")
        with self._lock:
            if name == POSITION_PROPERTY:
                self._on_position(data)
            elif name == DURATION_PROPERTY:
                self._set(duration=float(data or 0))
            elif name == PAUSE_PROPERTY:
                self._on_pause(bool(data))

    def _on_position(self, position):
        if position is None:
            return
        changes = {}
        if not self._state.mpv_ready and self._state.status == PlaybackStatus.PLAYING:
            changes["mpv_ready"] = True
        second = max(0, math.floor(position))
        if second != self._state.progress:
            changes["progress"] = second
        if changes:
            self._set(**changes)

    def _on_pause(self, paused: bool):
        # A pause event that lands during a load belongs to the previous item.
        if self._state.status not in (PlaybackStatus.PLAYING, PlaybackStatus.PAUSED):
            return
        if paused == (not self._state.is_playing):
            return
        self._set(
            is_playing=not paused,
            status=PlaybackStatus.PAUSED if paused else PlaybackStatus.PLAYING,
        )

    def _on_file_loaded(self, msg: dict):
        with self._lock:
            if self._state.status in (PlaybackStatus.LOADING, PlaybackStatus.PLAYING):
                self._set(mpv_ready=True)

    def _on_playback_ended(self, msg: dict):
        with self._lock:
            if self._state.status not in (PlaybackStatus.PLAYING, PlaybackStatus.PAUSED):
                logger.debug("Ignoring end of track in status %s", self._state.status.value)
                return
            # mpv has not confirmed the current load yet, so this end of
            # track belongs to the item that was playing before it.
            if not self._state.mpv_ready:
                logger.debug("Ignoring end of track from a superseded load")
                return

            if self._state.loop_mode == LoopMode.ONE:
                try:
                    self._channel.seek(0, "absolute")
                    self._channel.resume()
                except MPVError as e:
                    logger.warning("Repeat failed: %s", e)
                    return
                self._set(status=PlaybackStatus.PLAYING, is_playing=True, progress=0)
                return

            if not self._state.autoplay:
                self._set(status=PlaybackStatus.ENDED, is_playing=False)
                return

            last_index = len(self._queue) - 1
            if self._state.loop_mode == LoopMode.ALL and self._state.current_index == last_index:
                self.load_by_index(0)
                return

            self.next()
