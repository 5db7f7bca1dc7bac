"""Tests for ProcessSupervisor with a fake mpv process and a mocked channel."""

import os
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeProcess
from tubeterm.config import PlayerConfig
from tubeterm.player.models import SessionState
from tubeterm.player.mpv_client import ConnectFailed, IPCChannel, MPVError, StartupTimeout
from tubeterm.player.process import ProcessSupervisor


def make_channel(socket_path):
    channel = MagicMock(spec=IPCChannel)
    channel.socket_path = socket_path
    channel.connected = False

    def connect():
        channel.connected = True

    def disconnect():
        channel.connected = False

    channel.connect.side_effect = connect
    channel.disconnect.side_effect = disconnect
    return channel


def make_config(socket_path, **kwargs):
    kwargs.setdefault("startup_timeout", 1.0)
    kwargs.setdefault("socket_poll_interval", 0.01)
    kwargs.setdefault("quit_timeout", 0.2)
    return PlayerConfig(socket_path=socket_path, **kwargs)


@pytest.fixture
def fake_popen(socket_path):
    """Patch Popen; each spawn creates the socket file and a FakeProcess."""
    processes = []

    def spawn(cmd, **kwargs):
        assert not os.path.exists(socket_path), "stale socket should be removed before spawn"
        open(socket_path, "w").close()
        proc = FakeProcess()
        processes.append(proc)
        return proc

    with patch("tubeterm.player.process.subprocess.Popen", side_effect=spawn) as popen:
        popen.processes = processes
        yield popen


class TestProcessSupervisor:
    def test_initial_state(self, socket_path):
        sup = ProcessSupervisor(make_channel(socket_path), make_config(socket_path))
        assert sup.state == SessionState.NOT_STARTED
        assert sup.is_alive is False

    def test_command_line(self, socket_path):
        sup = ProcessSupervisor(
            make_channel(socket_path),
            make_config(socket_path, extra_args=["--volume=50"]),
        )
        cmd = sup.build_command()
        assert cmd[0] == "mpv"
        assert "--no-video" in cmd
        assert "--idle=yes" in cmd
        assert f"--input-ipc-server={socket_path}" in cmd
        assert cmd[-1] == "--volume=50"

    def test_start_spawns_and_connects(self, socket_path, fake_popen):
        channel = make_channel(socket_path)
        sup = ProcessSupervisor(channel, make_config(socket_path))
        sup.start()
        assert fake_popen.call_count == 1
        assert channel.connect.call_count == 1
        assert sup.state == SessionState.CONNECTED
        assert sup.is_alive is True

    def test_start_removes_stale_socket(self, socket_path, fake_popen):
        open(socket_path, "w").close()
        sup = ProcessSupervisor(make_channel(socket_path), make_config(socket_path))
        sup.start()  # fake_popen asserts the file was gone at spawn time
        assert fake_popen.call_count == 1

    def test_start_is_idempotent_when_connected(self, socket_path, fake_popen):
        channel = make_channel(socket_path)
        sup = ProcessSupervisor(channel, make_config(socket_path))
        sup.start()
        sup.start()
        sup.start()
        assert fake_popen.call_count == 1
        assert channel.connect.call_count == 1

    def test_start_reconnects_when_alive_but_disconnected(self, socket_path, fake_popen):
        channel = make_channel(socket_path)
        sup = ProcessSupervisor(channel, make_config(socket_path))
        sup.start()
        channel.connected = False
        sup.start()
        assert fake_popen.call_count == 1
        assert channel.connect.call_count == 2

    def test_startup_timeout(self, socket_path):
        channel = make_channel(socket_path)
        sup = ProcessSupervisor(channel, make_config(socket_path, startup_timeout=0.1))
        with patch("tubeterm.player.process.subprocess.Popen", return_value=FakeProcess()):
            with pytest.raises(StartupTimeout):
                sup.start()
        channel.connect.assert_not_called()
        assert sup.state == SessionState.DISCONNECTED

    def test_connect_failure_propagates(self, socket_path, fake_popen):
        channel = make_channel(socket_path)
        channel.connect.side_effect = ConnectFailed("nope")
        sup = ProcessSupervisor(channel, make_config(socket_path))
        with pytest.raises(ConnectFailed):
            sup.start()
        assert sup.state == SessionState.DISCONNECTED

    def test_missing_mpv_binary(self, socket_path):
        sup = ProcessSupervisor(make_channel(socket_path), make_config(socket_path))
        with patch("tubeterm.player.process.subprocess.Popen", side_effect=FileNotFoundError("mpv")):
            with pytest.raises(MPVError) as exc:
                sup.start()
        assert "mpv" in str(exc.value)

    def test_unexpected_exit_forces_fresh_spawn(self, socket_path, fake_popen, wait_for):
        channel = make_channel(socket_path)
        sup = ProcessSupervisor(channel, make_config(socket_path))
        sup.start()
        fake_popen.processes[0].exit(1)

        assert wait_for(lambda: sup.state == SessionState.DISCONNECTED)
        assert sup.is_alive is False
        channel.disconnect.assert_called()

        sup.start()
        assert fake_popen.call_count == 2
        assert sup.state == SessionState.CONNECTED

    def test_exit_seen_before_watcher_drops_old_connection(self, socket_path, fake_popen):
        channel = make_channel(socket_path)
        connects = []

        def connect():
            # Like IPCChannel.connect: a no-op while a socket is attached
            if channel.connected:
                return
            connects.append(True)
            channel.connected = True

        channel.connect.side_effect = connect
        sup = ProcessSupervisor(channel, make_config(socket_path))
        sup.start()
        # exited, but the watcher thread has not run yet
        fake_popen.processes[0].returncode = 1

        sup.start()
        assert fake_popen.call_count == 2
        channel.disconnect.assert_called_once()
        assert len(connects) == 2
        assert sup.state == SessionState.CONNECTED

    def test_quit_sends_quit_then_terminates(self, socket_path, fake_popen):
        channel = make_channel(socket_path)
        sup = ProcessSupervisor(channel, make_config(socket_path))
        sup.start()
        proc = fake_popen.processes[0]

        sup.quit()
        channel.quit.assert_called_once()
        assert proc.terminated is True
        assert proc.killed is False
        assert sup.is_alive is False
        assert sup.state == SessionState.NOT_STARTED
        assert not os.path.exists(socket_path)

    def test_quit_kills_stubborn_process(self, socket_path):
        channel = make_channel(socket_path)
        sup = ProcessSupervisor(channel, make_config(socket_path))
        proc = FakeProcess(ignore_terminate=True)

        def spawn(cmd, **kwargs):
            open(socket_path, "w").close()
            return proc

        with patch("tubeterm.player.process.subprocess.Popen", side_effect=spawn):
            sup.start()
        sup.quit()
        assert proc.terminated is True
        assert proc.killed is True

    def test_quit_without_session_is_noop(self, socket_path):
        channel = make_channel(socket_path)
        sup = ProcessSupervisor(channel, make_config(socket_path))
        sup.quit()
        channel.quit.assert_not_called()
