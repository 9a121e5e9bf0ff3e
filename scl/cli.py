"""scl: search the logs of all running Docker containers for a pattern."""

import logging
import os
import signal
import sys
import threading
from argparse import ArgumentParser, RawDescriptionHelpFormatter

from scl import __version__
from scl.config import OUTPUT_FORMATS, RunConfig, load_settings, load_yaml_config
from scl.coordinator import RunCoordinator
from scl.errors import RunCancelled, SclError, UsageError
from scl.producer import DockerCLI
from scl.renderer import make_renderer

logger = logging.getLogger(__name__)

EXAMPLES = """\
examples:
  scl --follow
  scl --tail 100
  scl --since 1h
  scl --follow --tail 100 --since 1h
  scl "error"
  scl "error" --follow
  scl "error" --tail 100
  scl "error" --since 1h
  scl "error" --follow --tail 100 --since 1h
"""


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="scl",
        description="Search Container Logs - search through the logs of all "
                    "running Docker containers for a pattern.",
        epilog=EXAMPLES,
        formatter_class=RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "pattern",
        nargs="*",
        help="Text to search for (case-sensitive substring; omit to match every line)",
    )
    parser.add_argument(
        "-f", "--follow",
        action="store_true",
        help="Follow log output in real time",
    )
    parser.add_argument(
        "-t", "--tail",
        type=int,
        default=0,
        help="Number of lines to show from the end of logs (0 for all)",
    )
    parser.add_argument(
        "-s", "--since",
        default=None,
        help="Show logs since duration (e.g., 1h, 30m, 24h)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Matcher threads per container (default: number of CPUs)",
    )
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI colors",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML settings file (default: $SCL_CONFIG)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log diagnostics at DEBUG level",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def build_run_config(args) -> RunConfig:
    """Turn parsed args into a validated RunConfig. Raises UsageError."""
    if len(args.pattern) > 1:
        raise UsageError("only one pattern argument is allowed")
    pattern = args.pattern[0] if args.pattern else ""
    since = args.since if args.since else None
    return RunConfig(
        pattern=pattern,
        follow=args.follow,
        tail_lines=args.tail,
        since=since,
    ).validate()


def run(args) -> int:
    """Validate, then execute one search. Returns the process exit code."""
    try:
        config = build_run_config(args)
        yaml_data = load_yaml_config(args.config or os.environ.get("SCL_CONFIG"))
        settings = load_settings(
            yaml_data,
            workers=args.workers,
            output=args.output,
            color="never" if args.no_color else None,
            log_level="DEBUG" if args.verbose else None,
        )
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.getLogger().setLevel(settings.log_level)

    shutdown_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    previous = {
        sig: signal.signal(sig, signal_handler)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }

    producer = DockerCLI(settings.docker_bin, stop_timeout=settings.stop_timeout)
    coordinator = RunCoordinator(
        config,
        producer,
        make_renderer(config, settings),
        settings,
        shutdown_event,
    )
    try:
        coordinator.run()
    except RunCancelled as e:
        print(f"Interrupted: {e}", file=sys.stderr)
        return 130
    except SclError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [SCL] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return run(args)
    except KeyboardInterrupt:
        return 0
    except BrokenPipeError:
        # stdout closed early (e.g. piped into head); silence the flush at exit
        os.dup2(os.open(os.devnull, os.O_WRONLY), sys.stdout.fileno())
        return 0


if __name__ == "__main__":
    sys.exit(main())
