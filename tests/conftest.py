"""Shared test fixtures for the tubeterm test suite."""

import json
import os
import shutil
import socket
import subprocess
import tempfile
import threading
import time
from unittest.mock import MagicMock

import pytest

from tubeterm.player.models import MediaItem
from tubeterm.player.mpv_client import CommandFailed, IPCChannel
from tubeterm.player.orchestrator import PlaybackOrchestrator


def _ok(msg: dict) -> list[dict]:
    return [{"request_id": msg["request_id"], "error": "success", "data": None}]


class FakeMPVServer:
    """A stand-in for mpv's IPC server on a real Unix socket.

    Every command line received is parsed and handed to responder, which
    returns the replies to write back (dicts or raw bytes). Connections are
    accepted one after another so reconnects can be tested.
    """

    def __init__(self, path: str, responder=None):
        self.path = path
        self.responder = responder or _ok
        self.received: list[dict] = []
        self.connections = 0
        self._conn: socket.socket | None = None
        self._lock = threading.Lock()
        self._connected = threading.Event()
        self._closed = False
        self._server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self._server.bind(path)
        self._server.listen(1)
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while not self._closed:
            try:
                conn, _ = self._server.accept()
            except OSError:
                return
            with self._lock:
                self._conn = conn
                self.connections += 1
            self._connected.set()
            buffer = b""
            while True:
                try:
                    chunk = conn.recv(4096)
                except OSError:
                    break
                if not chunk:
                    break
                buffer += chunk
                *lines, buffer = buffer.split(b"\n")
                for line in lines:
                    msg = json.loads(line)
                    with self._lock:
                        self.received.append(msg)
                    for reply in self.responder(msg) or []:
                        self.send(reply)
            conn.close()

    def wait_connected(self, timeout: float = 2.0) -> bool:
        return self._connected.wait(timeout)

    def send(self, data):
        if isinstance(data, dict):
            data = (json.dumps(data) + "\n").encode("utf-8")
        with self._lock:
            conn = self._conn
        if conn is None:
            return
        try:
            conn.sendall(data)
        except OSError:
            pass

    def commands(self) -> list[list]:
        with self._lock:
            return [m["command"] for m in self.received]

    def drop_connection(self):
        """Close the current client connection, as if mpv died."""
        self._connected.clear()
        with self._lock:
            conn = self._conn
        if conn is not None:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

    def close(self):
        self._closed = True
        self.drop_connection()
        try:
            self._server.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._server.close()


class RecordingChannel(IPCChannel):
    """IPCChannel that records commands instead of talking to mpv.

    Events are delivered synchronously with emit(). Verbs listed in
    `failing` raise CommandFailed; callables in `hooks` run when their verb
    is sent, which lets a test inject events mid-command.
    """

    def __init__(self):
        super().__init__("/tmp/tubeterm-test-unused.sock")
        self.sent: list[list] = []
        self.failing: set[str] = set()
        self.hooks: dict = {}

    @property
    def connected(self) -> bool:
        return True

    def send(self, command: list, timeout: float | None = None):
        self.sent.append(list(command))
        hook = self.hooks.get(command[0])
        if hook is not None:
            hook(command)
        if command[0] in self.failing:
            raise CommandFailed("error running command", command)
        return None

    def emit(self, msg: dict):
        self._dispatch(msg)


class FakeProcess:
    """Minimal subprocess.Popen stand-in for the supervisor tests."""

    def __init__(self, ignore_terminate: bool = False):
        self.returncode = None
        self.terminated = False
        self.killed = False
        self.ignore_terminate = ignore_terminate
        self._exited = threading.Event()

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if not self._exited.wait(timeout):
            raise subprocess.TimeoutExpired("mpv", timeout)
        return self.returncode

    def exit(self, code: int = 0):
        self.returncode = code
        self._exited.set()

    def terminate(self):
        self.terminated = True
        if not self.ignore_terminate:
            self.exit(-15)

    def kill(self):
        self.killed = True
        self.exit(-9)


@pytest.fixture
def wait_for():
    """Poll a predicate until it is true or the timeout passes."""

    def _wait_for(predicate, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return _wait_for


@pytest.fixture
def socket_dir():
    """A short temp dir; AF_UNIX paths are limited to ~100 bytes."""
    path = tempfile.mkdtemp(prefix="tt-")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def socket_path(socket_dir):
    return os.path.join(socket_dir, "mpv.sock")


@pytest.fixture
def mpv_server(socket_path):
    server = FakeMPVServer(socket_path)
    yield server
    server.close()


@pytest.fixture
def channel(socket_path):
    ch = IPCChannel(socket_path, connect_attempts=2, connect_delay=0.01, command_timeout=2.0)
    yield ch
    ch.close()


@pytest.fixture
def recording_channel():
    return RecordingChannel()


@pytest.fixture
def orchestrator(recording_channel):
    """An initialized orchestrator on a recording channel, history cleared."""
    orch = PlaybackOrchestrator(MagicMock(), recording_channel)
    assert orch.initialize() is True
    recording_channel.sent.clear()
    return orch


@pytest.fixture
def items():
    return [
        MediaItem("aaa", "Alpha", "Artist A", "3:00"),
        MediaItem("bbb", "Bravo", "Artist B", "4:10"),
        MediaItem("ccc", "Charlie", "Artist C", "2:05"),
    ]
