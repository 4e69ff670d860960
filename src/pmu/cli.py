"""
pmu CLI - Entry point

Every subcommand except ``daemon`` and ``config`` sends one message to the
background daemon, starting it first when it is not running.
"""

import argparse
import sys
from typing import Callable, Optional

from loguru import logger

from pmu.commands import playback
from pmu.core import config as config_module
from pmu.core.config import Config
from pmu.core.console import print_error, safe_print
from pmu.core.exceptions import DaemonStartError
from pmu.core.output import setup_loguru


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pmu",
        description="pmu - queue and play local audio files from the command line",
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    play_parser = subparsers.add_parser("play", help="Queue a song to play")
    play_parser.add_argument("path", help="Audio file (or an input played before)")
    play_parser.add_argument(
        "--now", action="store_true", help="Clear the queue and play immediately"
    )

    subparsers.add_parser("pause", help="Pause or unpause the current song")
    subparsers.add_parser("stop", help="Stop the player")
    subparsers.add_parser("skip", help="Skip to the next song")
    subparsers.add_parser(
        "daemon", help="Start the player daemon. This should not be used directly."
    )
    subparsers.add_parser("config", help="Print the location of the configuration directory")

    return parser


def run_client_command(action: Callable[[], object]) -> int:
    """
    Run a command that talks to the daemon.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        action()
        return 0
    except FileNotFoundError as e:
        print_error(str(e))
    except DaemonStartError as e:
        logger.error(f"Daemon failed to start: {e}")
        print_error(f"Daemon failed to start: {e}")
    except OSError as e:
        logger.error(f"Could not reach daemon: {e}")
        print_error(f"Could not reach daemon: {e}")
    return 1


def run_daemon(cfg: Config) -> int:
    from pmu.daemon import daemon

    try:
        daemon(cfg)
    except OSError as e:
        logger.error(f"Daemon could not start: {e}")
        print_error(f"Daemon could not start: {e}")
        return 1
    except Exception:
        logger.exception("Daemon crashed")
        raise
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the pmu command."""
    args = build_parser().parse_args(argv)

    cfg = config_module.load_config()
    setup_loguru(cfg.logging)

    if args.subcommand == "config":
        safe_print(str(config_module.get_config_dir()))
        sys.exit(0)

    if args.subcommand == "daemon":
        sys.exit(run_daemon(cfg))

    commands = {
        "play": lambda: playback.enqueue(cfg, args.path, now=args.now),
        "pause": lambda: playback.pause_toggle(cfg),
        "stop": lambda: playback.stop(cfg),
        "skip": lambda: playback.skip(cfg),
    }
    sys.exit(run_client_command(commands[args.subcommand]))


if __name__ == "__main__":
    main()
