"""Command-line interface for Transcript Viewer."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
import threading
from types import TracebackType
from typing import Iterable, Optional, Tuple

from transcript_viewer.config import load_config
from transcript_viewer.conversation import (
    Conversation,
    ConversationLoadError,
    conversation_to_mapping,
    load_conversation,
)
from transcript_viewer.logging_setup import init_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="tview", description="Transcript Viewer")
    parser.add_argument(
        "path",
        nargs="?",
        default="",
        help="Path to a conversation JSON file (defaults to the last one opened)",
    )
    parser.add_argument(
        "--dump-segments",
        action="store_true",
        help="Print the conversation with decomposed segments as JSON and exit",
    )
    return parser


def _install_excepthooks() -> None:
    def excepthook(exc_type, exc, tb) -> None:
        logger.exception("Uncaught exception", exc_info=(exc_type, exc, tb))

    sys.excepthook = excepthook

    if hasattr(threading, "excepthook"):

        def thread_hook(args: threading.ExceptHookArgs) -> None:
            exc_value = args.exc_value or RuntimeError("unknown")
            exc_info: Tuple[
                type[BaseException], BaseException, Optional[TracebackType]
            ] = (
                args.exc_type,
                exc_value,
                args.exc_traceback,
            )
            thread_name = args.thread.name if args.thread else "thread"
            logger.exception("Thread exception in %s", thread_name, exc_info=exc_info)

        threading.excepthook = thread_hook


def _dump_segments(conversation: Conversation) -> int:
    data = conversation_to_mapping(conversation, include_segments=True)
    print(json.dumps(data, indent=2, ensure_ascii=False))
    return 0


def _run_tui(conversation: Conversation, path: Path) -> int:
    try:
        from transcript_viewer.tui import run_tui
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    return run_tui(conversation, path)


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point for the CLI."""
    init_logging()
    logger.info("App start")
    _install_excepthooks()

    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    raw_path = args.path or load_config().last_conversation_path or ""
    if not raw_path:
        print("No conversation file given.", file=sys.stderr)
        return 1
    path = Path(raw_path).expanduser()

    try:
        conversation = load_conversation(path)
    except ConversationLoadError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    if args.dump_segments:
        return _dump_segments(conversation)

    exit_code = _run_tui(conversation, path)
    logger.info("App exit code=%s", exit_code)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
