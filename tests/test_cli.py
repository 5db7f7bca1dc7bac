"""Tests for the tubeterm command line entry point."""

from unittest.mock import MagicMock, patch

import pytest

from tubeterm.cli import build_session, main
from tubeterm.config import Config, PlayerConfig, SearchConfig
from tubeterm.player.orchestrator import PlaybackOrchestrator
from tubeterm.sources.suggest import SuggestionSource
from tubeterm.sources.youtube import YouTubeSource


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def session():
    orchestrator = MagicMock()
    source = MagicMock()
    suggestions = MagicMock()
    with patch(
        "tubeterm.cli.build_session", return_value=(orchestrator, source, suggestions),
    ) as build:
        build.orchestrator = orchestrator
        build.source = source
        build.suggestions = suggestions
        yield build


class TestBuildSession:
    def test_wiring(self):
        config = Config(player=PlayerConfig(socket_path="/tmp/tt-test.sock", autoplay=False))
        orchestrator, source, suggestions = build_session(config)
        assert isinstance(orchestrator, PlaybackOrchestrator)
        assert isinstance(source, YouTubeSource)
        assert orchestrator.state.autoplay is False
        assert isinstance(suggestions, SuggestionSource)
        suggestions.close()

    def test_suggestions_disabled(self):
        config = Config(
            player=PlayerConfig(socket_path="/tmp/tt-test.sock"),
            search=SearchConfig(suggestions=False),
        )
        _, _, suggestions = build_session(config)
        assert suggestions is None


class TestMain:
    def test_runs_app_and_shuts_down(self, isolated, session):
        log_file = isolated / "logs" / "tt.log"
        with patch("tubeterm.tui.app.TubeTermApp") as app_cls:
            main(["lofi", "beats", "--log-file", str(log_file)])

        args, kwargs = app_cls.call_args
        assert args == (session.orchestrator, session.source)
        assert kwargs["initial_query"] == "lofi beats"
        assert kwargs["initial_playlist"] is None
        assert kwargs["seek_step"] == 5
        assert kwargs["suggestions"] is session.suggestions
        app_cls.return_value.run.assert_called_once()
        session.orchestrator.shutdown.assert_called_once()
        session.suggestions.close.assert_called_once()
        assert log_file.parent.is_dir()

    def test_overrides(self, isolated, session):
        with patch("tubeterm.tui.app.TubeTermApp") as app_cls:
            main([
                "--playlist", "PL123",
                "--socket", str(isolated / "mpv.sock"),
                "--log-file", str(isolated / "tt.log"),
            ])

        config = session.call_args[0][0]
        assert config.player.socket_path == str(isolated / "mpv.sock")
        assert app_cls.call_args[1]["initial_query"] is None
        assert app_cls.call_args[1]["initial_playlist"] == "PL123"

    def test_shutdown_runs_when_app_crashes(self, isolated, session):
        with patch("tubeterm.tui.app.TubeTermApp") as app_cls:
            app_cls.return_value.run.side_effect = RuntimeError("boom")
            with pytest.raises(RuntimeError):
                main(["--log-file", str(isolated / "tt.log")])
        session.orchestrator.shutdown.assert_called_once()
        session.suggestions.close.assert_called_once()
