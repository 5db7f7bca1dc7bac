"""mpv process supervisor.

Owns the mpv child process and its IPC socket path. start() is idempotent:
it spawns mpv only when no live process exists, and otherwise just
reconnects the IPC channel.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from typing import TYPE_CHECKING

from tubeterm.player.models import SessionState
from tubeterm.player.mpv_client import IPCChannel, MPVError, StartupTimeout

if TYPE_CHECKING:
    from tubeterm.config import PlayerConfig

logger = logging.getLogger(__name__)


class ProcessSupervisor:
    """Spawns, watches and tears down the mpv process for one session."""

    def __init__(self, channel: IPCChannel, config: "PlayerConfig"):
        self.channel = channel
        self._config = config
        self._process: subprocess.Popen | None = None
        self._lock = threading.RLock()
        self._state = SessionState.NOT_STARTED
        channel.add_disconnect_callback(self._on_channel_lost)

    @property
    def socket_path(self) -> str:
        return self.channel.socket_path

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def build_command(self) -> list[str]:
        """mpv command line: audio only, idle between files, IPC on our socket."""
        cmd = [
            self._config.mpv_binary,
            "--idle=yes",
            "--no-video",
            "--keep-open=yes",
            "--no-terminal",
            f"--ytdl-format={self._config.ytdl_format}",
            f"--input-ipc-server={self.socket_path}",
        ]
        cmd.extend(self._config.extra_args)
        return cmd

    def start(self):
        """Make sure a live mpv process with a connected channel exists.

        Raises StartupTimeout if the socket never appears, ConnectFailed if
        the channel can't connect.
        """
        with self._lock:
            if self.is_alive and self.channel.connected:
                return

            if self.is_alive:
                logger.info("mpv running but IPC disconnected, reconnecting")
                self._connect()
                return

            # mpv may have exited before the watcher noticed; the old
            # connection must not be reused for the new process.
            if self.channel.connected:
                self.channel.disconnect()
            self._remove_stale_socket()
            self._spawn()
            self._wait_for_socket()
            self._connect()

    def _connect(self):
        self._state = SessionState.CONNECTING
        try:
            self.channel.connect()
        except MPVError:
            self._state = SessionState.DISCONNECTED
            raise
        self._state = SessionState.CONNECTED

    def _remove_stale_socket(self):
        if os.path.exists(self.socket_path):
            try:
                os.remove(self.socket_path)
                logger.info("Removed stale mpv socket: %s", self.socket_path)
            except OSError as e:
                logger.warning("Could not remove stale mpv socket %s: %s", self.socket_path, e)

    def _spawn(self):
        self._state = SessionState.SPAWNING
        cmd = self.build_command()
        logger.info("Starting mpv: %s", " ".join(cmd))
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            self._state = SessionState.NOT_STARTED
            raise MPVError(f"Failed to start {self._config.mpv_binary}: {e}") from e
        self._process = process
        watcher = threading.Thread(
            target=self._watch_process, args=(process,), daemon=True, name="mpv-watch",
        )
        watcher.start()

    def _wait_for_socket(self):
        self._state = SessionState.WAITING_SOCKET
        deadline = time.monotonic() + self._config.startup_timeout
        while not os.path.exists(self.socket_path):
            if time.monotonic() > deadline:
                self._state = SessionState.DISCONNECTED
                raise StartupTimeout(
                    f"Timed out after {self._config.startup_timeout}s waiting for mpv IPC socket"
                )
            time.sleep(self._config.socket_poll_interval)

    def _watch_process(self, process: subprocess.Popen):
        code = process.wait()
        with self._lock:
            if self._process is not process:
                return
            self._process = None
        logger.warning("mpv exited unexpectedly (code %s)", code)
        self.channel.disconnect()
        self._state = SessionState.DISCONNECTED

    def _on_channel_lost(self, reason: str):
        if self._state == SessionState.CONNECTED:
            self._state = SessionState.DISCONNECTED

    def quit(self):
        """Ask mpv to quit, then terminate it. No-op without a session."""
        with self._lock:
            process = self._process
            if process is None:
                return
            self._process = None

            if self.channel.connected:
                try:
                    self.channel.quit()
                except MPVError as e:
                    logger.debug("mpv quit command failed: %s", e)

            if process.poll() is None:
                process.terminate()
                try:
                    process.wait(timeout=self._config.quit_timeout)
                except subprocess.TimeoutExpired:
                    logger.warning("mpv did not exit after SIGTERM, killing")
                    process.kill()
                    process.wait()

            self.channel.disconnect()
            self._state = SessionState.NOT_STARTED
            logger.info("mpv stopped")

        if os.path.exists(self.socket_path):
            try:
                os.remove(self.socket_path)
            except OSError:
                pass
