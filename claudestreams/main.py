#!/usr/bin/env python3
"""
Command-line entry point for claude-streams.

Usage:
    # List known streams
    python -m claudestreams.main list

    # Stream metadata
    python -m claudestreams.main head _history

    # Read records from the beginning of a conversation
    python -m claudestreams.main read 11111111-1111-1111-1111-111111111111 --limit 65536

    # Follow a conversation as it is written
    python -m claudestreams.main --dir ~/.claude tail 11111111-1111-1111-1111-111111111111
"""

import argparse
import signal
import sys
import threading
from typing import BinaryIO, List, Optional

from claudestreams.core.errors import StorageError
from claudestreams.core.format import ReadResult
from claudestreams.core.offset import ZERO_OFFSET
from claudestreams.storage.claude_storage import ClaudeStorage
from claudestreams.utils.config import Config
from claudestreams.utils.logging import configure_logging, get_logger, stream_context

logger = get_logger(__name__)

_FOLLOW_POLL_SECONDS = 1.0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="claude-streams",
        description="Claude conversation logs as tailable streams",
    )

    parser.add_argument(
        "--dir",
        type=str,
        default=None,
        help="Claude directory (default: ~/.claude, or $CLAUDE_DIR)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["console", "json"],
        help="Log output format (default: from config, console)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List known stream ids")

    head = commands.add_parser("head", help="Show stream metadata")
    head.add_argument("stream_id")

    for name, help_text in (
        ("read", "Print records from an offset"),
        ("tail", "Print records and follow new ones"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("stream_id")
        sub.add_argument(
            "--offset",
            type=str,
            default=ZERO_OFFSET,
            help="Offset to start from (default: beginning)",
        )
        sub.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Byte budget per read (default: from config)",
        )

    return parser.parse_args(argv)


def _write_records(result: ReadResult, out: BinaryIO) -> None:
    for message in result.messages:
        out.write(message.data)
        out.write(b"\n")
    out.flush()


def follow(
    storage: ClaudeStorage,
    stream_id: str,
    offset: str,
    limit: int,
    out: BinaryIO,
    cancel: threading.Event,
) -> str:
    """
    Print records from an offset, then keep printing as the stream grows.

    Subscribes before the first read so that appends racing with the
    catch-up read still produce a wake-up.

    Args:
        storage: Open storage
        stream_id: Stream to follow
        offset: Offset to start from
        limit: Byte budget per read
        out: Binary output stream
        cancel: Event that stops following

    Returns:
        The offset reached when following stopped
    """
    channel = storage.subscribe(stream_id, offset, cancel)

    while not cancel.is_set():
        result = storage.read(stream_id, offset, limit)
        _write_records(result, out)
        offset = result.next_offset

        if result.messages and not result.up_to_date:
            continue

        if channel.get(timeout=_FOLLOW_POLL_SECONDS) is None and channel.closed:
            break

    return offset


def run(args: argparse.Namespace, config: Config, out: BinaryIO) -> int:
    """Execute a parsed command against the configured storage."""
    limit = getattr(args, "limit", None)
    if limit is None:
        limit = int(config.get("reader.default_limit"))
    watch = args.command == "tail"

    with ClaudeStorage.from_config(config, watch=watch) as storage:
        if args.command == "list":
            for stream_id in storage.list_streams():
                out.write(stream_id.encode() + b"\n")
            out.flush()

        elif args.command == "head":
            info = storage.head(args.stream_id)
            out.write(f"content-type: {info.content_type}\n".encode())
            out.write(f"next-offset: {info.next_offset}\n".encode())
            out.flush()

        elif args.command == "read":
            result = storage.read(args.stream_id, args.offset, limit)
            _write_records(result, out)
            print(f"next-offset: {result.next_offset}", file=sys.stderr)

        elif args.command == "tail":
            cancel = threading.Event()
            if threading.current_thread() is threading.main_thread():
                for sig in (signal.SIGTERM, signal.SIGINT):
                    signal.signal(sig, lambda signum, frame: cancel.set())
            with stream_context(args.stream_id):
                offset = follow(storage, args.stream_id, args.offset, limit, out, cancel)
                logger.info("Stopped following", offset=offset)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    config = Config(args.config)
    if args.dir:
        config.set("storage.claude_dir", args.dir)
    if args.log_level:
        config.set("logging.level", args.log_level)
    if args.log_format:
        config.set("logging.format", args.log_format)

    configure_logging(
        log_level=config.get("logging.level", "INFO"),
        log_format=config.get("logging.format", "console"),
    )

    try:
        return run(args, config, sys.stdout.buffer)
    except StorageError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
