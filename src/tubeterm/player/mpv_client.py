"""mpv JSON IPC client.

Communicates with mpv via its Unix domain socket using the JSON IPC protocol.
Ref: https://mpv.io/manual/master/#json-ipc

A reader thread owns the receive side of the socket: it splits the byte
stream into lines, resolves waiting commands by request_id and hands every
parsed message to a dispatcher thread, which fans it out to subscribers.
A slow subscriber therefore never stalls command replies.
"""

import itertools
import json
import logging
import queue
import socket
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)

WILDCARD = "*"
PLAYBACK_ENDED = "playback-ended"
END_OF_STREAM_PROPERTY = "eof-reached"

_STOP = object()

Handler = Callable[[dict], None]


class MPVError(Exception):
    """Error communicating with mpv."""


class StartupTimeout(MPVError):
    """The mpv IPC socket never appeared."""


class ConnectFailed(MPVError):
    """Could not connect to the mpv IPC socket within the retry budget."""


class NotConnected(MPVError):
    """A command was issued with no live IPC connection."""


class CommandTimeout(MPVError):
    """mpv did not answer a command in time."""


class MalformedFrame(MPVError):
    """An inbound line could not be parsed as a JSON object."""


class CommandFailed(MPVError):
    """mpv answered a command with a non-success error field."""

    def __init__(self, reason: str, command: list | None = None):
        super().__init__(f"mpv command failed: {reason}")
        self.reason = reason
        self.command = command


def encode_command(command: list, request_id: int) -> bytes:
    """Serialize a command as one newline-terminated JSON record."""
    return (json.dumps({"command": list(command), "request_id": request_id}) + "\n").encode("utf-8")


def parse_frame(line: bytes) -> dict:
    """Parse one line of the IPC stream. Raises MalformedFrame."""
    try:
        msg = json.loads(line)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedFrame(f"{e}: {line[:200]!r}") from e
    if not isinstance(msg, dict):
        raise MalformedFrame(f"expected a JSON object: {line[:200]!r}")
    return msg


class _PendingRequest:
    """Waiter for the reply to a single outbound command."""

    def __init__(self, request_id: int, command: list):
        self.request_id = request_id
        self.command = command
        self.response: dict | None = None
        self.error: MPVError | None = None
        self._done = threading.Event()

    def resolve(self, response: dict):
        self.response = response
        self._done.set()

    def fail(self, error: MPVError):
        self.error = error
        self._done.set()

    def wait(self, timeout: float) -> bool:
        return self._done.wait(timeout)


class _Subscription:
    def __init__(self, event_filter: str, handler: Handler):
        self.event_filter = event_filter
        self.handler = handler
        self.active = True

    def matches(self, event_name: str | None) -> bool:
        return self.event_filter == WILDCARD or self.event_filter == event_name


class IPCChannel:
    """Client for mpv's JSON IPC protocol over a Unix socket.

    Usage:
        channel = IPCChannel("/tmp/tubeterm-mpv.sock")
        channel.connect()
        unsubscribe = channel.subscribe("property-change", print)
        channel.observe("time-pos")
        channel.load("https://www.youtube.com/watch?v=...")
        channel.close()
    """

    def __init__(
        self,
        socket_path: str,
        connect_attempts: int = 5,
        connect_delay: float = 1.0,
        command_timeout: float = 10.0,
    ):
        self.socket_path = socket_path
        self.connect_attempts = connect_attempts
        self.connect_delay = connect_delay
        self.command_timeout = command_timeout

        self._sock: socket.socket | None = None
        self._lock = threading.Lock()          # guards _sock, _pending, _observed
        self._write_lock = threading.Lock()
        self._connect_lock = threading.Lock()
        self._request_ids = itertools.count(1)
        self._pending: dict[int, _PendingRequest] = {}

        self._observer_ids = itertools.count(1)
        self._observed: dict[str, int] = {}
        self._eof_reached = False

        self._subscribers: list[_Subscription] = []
        self._subscribers_lock = threading.Lock()
        self._dispatch_queue: queue.Queue = queue.Queue()
        self._dispatcher: threading.Thread | None = None
        self._reader: threading.Thread | None = None

        self._disconnect_callbacks: list[Callable[[str], None]] = []

    @property
    def connected(self) -> bool:
        return self._sock is not None

    # --- connection -------------------------------------------------------

    def connect(self):
        """Connect to the mpv IPC socket, retrying a bounded number of times.

        Re-issues every observe() made so far once connected, since mpv
        forgets property observers when it restarts. Raises ConnectFailed.
        """
        with self._connect_lock:
            if self.connected:
                return
            last_error: OSError | None = None
            for attempt in range(1, self.connect_attempts + 1):
                sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                try:
                    sock.connect(self.socket_path)
                except OSError as e:
                    sock.close()
                    last_error = e
                    if attempt < self.connect_attempts:
                        logger.info(
                            "Connection to mpv IPC failed (attempt %d/%d): %s. Retrying...",
                            attempt, self.connect_attempts, e,
                        )
                        time.sleep(self.connect_delay)
                    continue
                self._attach(sock)
                logger.info("Connected to mpv at %s", self.socket_path)
                break
            else:
                raise ConnectFailed(
                    f"Failed to connect to mpv IPC socket after "
                    f"{self.connect_attempts} attempts: {last_error}"
                )
        self._reobserve()

    def _attach(self, sock: socket.socket):
        with self._lock:
            self._sock = sock
            self._eof_reached = False
        self._ensure_dispatcher()
        self._reader = threading.Thread(
            target=self._read_loop, args=(sock,), daemon=True, name="mpv-ipc-reader",
        )
        self._reader.start()

    def _ensure_dispatcher(self):
        if self._dispatcher is not None and self._dispatcher.is_alive():
            return
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, daemon=True, name="mpv-ipc-dispatch",
        )
        self._dispatcher.start()

    def disconnect(self):
        """Close the connection. Outstanding commands fail with NotConnected."""
        sock = self._sock
        if sock is not None:
            self._drop_connection(sock, "closed by client")

    def close(self):
        """Disconnect and stop the dispatcher thread."""
        self.disconnect()
        dispatcher = self._dispatcher
        if dispatcher is not None and dispatcher.is_alive():
            self._dispatch_queue.put(_STOP)
            if dispatcher is not threading.current_thread():
                dispatcher.join(timeout=2)
        self._dispatcher = None

    def add_disconnect_callback(self, callback: Callable[[str], None]):
        """Register a callback run (with a reason string) when the socket drops."""
        self._disconnect_callbacks.append(callback)

    def _drop_connection(self, sock: socket.socket, reason: str):
        with self._lock:
            if self._sock is not sock:
                return
            self._sock = None
            pending = list(self._pending.values())
            self._pending.clear()

        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()

        for request in pending:
            request.fail(NotConnected(f"mpv IPC connection lost: {reason}"))
        logger.info("Disconnected from mpv (%s)", reason)

        for callback in list(self._disconnect_callbacks):
            try:
                callback(reason)
            except Exception:
                logger.exception("Disconnect callback failed")

    # --- receive side -----------------------------------------------------

    def _read_loop(self, sock: socket.socket):
        buffer = b""
        reason = "socket closed by mpv"
        while True:
            try:
                chunk = sock.recv(4096)
            except OSError as e:
                reason = f"socket error: {e}"
                break
            if not chunk:
                break
            buffer += chunk
            *lines, buffer = buffer.split(b"\n")
            for line in lines:
                if not line.strip():
                    continue
                try:
                    msg = parse_frame(line)
                except MalformedFrame as e:
                    logger.warning("Dropping malformed mpv frame: %s", e)
                    continue
                self._handle_message(msg)
        self._drop_connection(sock, reason)

    def _handle_message(self, msg: dict):
        request_id = msg.get("request_id")
        if request_id is not None and "event" not in msg:
            with self._lock:
                pending = self._pending.pop(request_id, None)
            if pending is not None:
                pending.resolve(msg)
            else:
                logger.debug("Reply for unknown request_id %s", request_id)

        self._dispatch_queue.put(msg)

        if msg.get("event") == "property-change" and msg.get("name") == END_OF_STREAM_PROPERTY:
            reached = msg.get("data") is True
            if reached and not self._eof_reached:
                self._dispatch_queue.put({"event": PLAYBACK_ENDED, "reason": "eof"})
            self._eof_reached = reached

    def _dispatch_loop(self):
        while True:
            msg = self._dispatch_queue.get()
            if msg is _STOP:
                break
            self._dispatch(msg)

    def _dispatch(self, msg: dict):
        event_name = msg.get("event")
        with self._subscribers_lock:
            snapshot = list(self._subscribers)
        for sub in snapshot:
            if not sub.active or not sub.matches(event_name):
                continue
            try:
                sub.handler(msg)
            except Exception:
                logger.exception("mpv event handler failed (%s)", event_name or "reply")

    def subscribe(self, event_filter: str, handler: Handler) -> Callable[[], None]:
        """Call handler for every message whose "event" equals event_filter.

        Use "*" to receive everything, including command replies. Returns an
        unsubscribe function which is safe to call from inside a handler.
        """
        sub = _Subscription(event_filter, handler)
        with self._subscribers_lock:
            self._subscribers.append(sub)

        def unsubscribe():
            sub.active = False
            with self._subscribers_lock:
                try:
                    self._subscribers.remove(sub)
                except ValueError:
                    pass

        return unsubscribe

    # --- send side --------------------------------------------------------

    def send(self, command: list, timeout: float | None = None) -> Any:
        """Send a command and block until mpv answers it.

        Returns the reply's "data" field. Raises NotConnected, CommandFailed
        or CommandTimeout.
        """
        with self._lock:
            sock = self._sock
            if sock is None:
                raise NotConnected("mpv IPC socket not connected")
            request_id = next(self._request_ids)
            pending = _PendingRequest(request_id, command)
            self._pending[request_id] = pending

        logger.debug("mpv <- %s (request_id=%d)", command, request_id)
        try:
            with self._write_lock:
                sock.sendall(encode_command(command, request_id))
        except OSError as e:
            with self._lock:
                self._pending.pop(request_id, None)
            self._drop_connection(sock, f"write failed: {e}")
            raise NotConnected(f"mpv IPC write failed: {e}") from e

        wait = self.command_timeout if timeout is None else timeout
        if not pending.wait(wait):
            with self._lock:
                self._pending.pop(request_id, None)
            raise CommandTimeout(f"mpv did not answer {command[0]!r} within {wait}s")

        if pending.error is not None:
            raise pending.error
        response = pending.response or {}
        error = response.get("error", "success")
        if error != "success":
            raise CommandFailed(error, command)
        return response.get("data")

    def command(self, *args) -> Any:
        """Send a command to mpv.

        Examples:
            channel.command("stop")
            channel.command("seek", 10, "relative")
            channel.command("loadfile", "https://...", "replace")
        """
        return self.send(list(args))

    def observe(self, name: str):
        """Ask mpv to emit property-change events for a property.

        The observation is remembered and re-issued after every reconnect,
        so observing a property twice does not register it with mpv again.
        """
        with self._lock:
            if name in self._observed:
                return
            observer_id = next(self._observer_ids)
            self._observed[name] = observer_id
        self.command("observe_property", observer_id, name)

    def _reobserve(self):
        with self._lock:
            observed = list(self._observed.items())
        for name, observer_id in observed:
            try:
                self.command("observe_property", observer_id, name)
            except MPVError as e:
                logger.warning("Failed to re-observe mpv property %s: %s", name, e)

    def set_property(self, name: str, value):
        self.command("set_property", name, value)

    def load(self, url: str):
        """Load a URL, replacing whatever is playing."""
        self.command("loadfile", url, "replace")

    def pause(self):
        self.set_property("pause", True)

    def resume(self):
        self.set_property("pause", False)

    def seek(self, seconds: float, mode: str = "relative"):
        """Seek by or to a position. mode: "relative" or "absolute"."""
        self.command("seek", seconds, mode)

    def stop(self):
        self.command("stop")

    def quit(self):
        """Tell mpv to exit. mpv may drop the socket before replying."""
        try:
            self.command("quit")
        except NotConnected:
            pass
