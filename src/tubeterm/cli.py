"""CLI entry point for tubeterm.

tubeterm: Runs the Textual TUI, which drives a private mpv instance.
"""

import argparse
import logging
import os

from tubeterm.config import Config, load_config


def build_session(config: Config):
    """Wire up channel, supervisor, orchestrator and search sources.

    The suggestion source is None when autocomplete is turned off.
    """
    from tubeterm.player.mpv_client import IPCChannel
    from tubeterm.player.orchestrator import PlaybackOrchestrator
    from tubeterm.player.process import ProcessSupervisor
    from tubeterm.sources.suggest import SuggestionSource
    from tubeterm.sources.youtube import YouTubeSource

    channel = IPCChannel(
        config.player.socket_path,
        connect_attempts=config.player.connect_attempts,
        connect_delay=config.player.connect_delay,
        command_timeout=config.player.command_timeout,
    )
    supervisor = ProcessSupervisor(channel, config.player)
    orchestrator = PlaybackOrchestrator(supervisor, channel, autoplay=config.player.autoplay)
    source = YouTubeSource(config.search)
    suggestions = SuggestionSource() if config.search.suggestions else None
    return orchestrator, source, suggestions


def configure_logging(level: str, log_file: str):
    directory = os.path.dirname(log_file)
    if directory:
        os.makedirs(directory, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
        filename=log_file,
    )


def main(argv: list[str] | None = None):
    """Entry point for the tubeterm command."""
    parser = argparse.ArgumentParser(
        description="tubeterm - play YouTube audio from the terminal through mpv"
    )
    parser.add_argument(
        "query", nargs="*", help="Search query to run on startup"
    )
    parser.add_argument(
        "--playlist", default=None, help="YouTube playlist URL or ID to queue on startup"
    )
    parser.add_argument(
        "--config", default=None, help="Path to tubeterm.toml config file"
    )
    parser.add_argument(
        "--socket", default=None, help="mpv IPC socket path (default: per-process temp file)"
    )
    parser.add_argument(
        "--log-level", default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )
    parser.add_argument(
        "--log-file", default=None, help="Log file (default: ~/.tubeterm/tubeterm.log)"
    )
    args = parser.parse_args(argv)

    config = load_config(args.config)

    # CLI args override config file
    if args.socket:
        config.player.socket_path = args.socket
    if args.log_level:
        config.logging.level = args.log_level
    if args.log_file:
        config.logging.file = args.log_file

    configure_logging(config.logging.level, config.logging.file)
    logger = logging.getLogger("tubeterm")

    from tubeterm.tui.app import TubeTermApp

    orchestrator, source, suggestions = build_session(config)
    app = TubeTermApp(
        orchestrator,
        source,
        seek_step=config.player.seek_step,
        initial_query=" ".join(args.query) or None,
        initial_playlist=args.playlist,
        suggestions=suggestions,
    )
    try:
        app.run()
    finally:
        logger.info("Shutting down mpv session")
        orchestrator.shutdown()
        if suggestions is not None:
            suggestions.close()


if __name__ == "__main__":
    main()
