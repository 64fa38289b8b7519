#!/usr/bin/env python3
"""
Phototheology CLI

Operator tools for the scripture extractor and for GuestHouse events
stored under the configured data directory.

Commands:

1) extract
   - Print the canonical scripture references found in a text
     (a file path, or stdin with "-").

2) strip
   - Print a text with markup tags and HTML entities removed.

3) events
   - List stored events, optionally filtered by host and status.

4) leaderboard
   - Print the ranked guests of one event.

5) analytics
   - Print the post-session analytics of one event as JSON.

The live runtime server is started separately, e.g.:

    uvicorn runtime.api.server:app --reload
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from configs.settings import settings
from core.scripture.reference_extractor import extract_references, strip_markup
from exceptions.exceptions import NotFoundError
from runtime.agents.session_coordinator import LiveSessionCoordinator
from runtime.models.session_models import EventStatus
from runtime.store.guesthouse_store import GuestHouseStore


def _read_text(source: str) -> str:
    """Read a whole text from a file path, or from stdin when source is '-'."""
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.is_file():
        raise FileNotFoundError(f"Source file not found: {source}")
    return path.read_text(encoding="utf-8")


def _coordinator(data_dir: str) -> LiveSessionCoordinator:
    return LiveSessionCoordinator(store=GuestHouseStore(data_dir=data_dir))


# ---------------------------------------------------------------------------
# Scripture
# ---------------------------------------------------------------------------


def cmd_extract(source: str, strict: bool) -> List[str]:
    references = extract_references(_read_text(source), strict=strict)
    if not references:
        print("[PT] No scripture references found")
    for reference in references:
        print(reference)
    return references


def cmd_strip(source: str) -> str:
    text = strip_markup(_read_text(source))
    print(text)
    return text


# ---------------------------------------------------------------------------
# GuestHouse events
# ---------------------------------------------------------------------------


def cmd_events(data_dir: str, host_id: Optional[str], statuses: Optional[List[str]]) -> None:
    coordinator = _coordinator(data_dir)
    wanted = [EventStatus(s) for s in statuses] if statuses else None
    events = coordinator.list_events(host_id=host_id, statuses=wanted)

    print(f"[PT] {len(events)} event(s) in {data_dir}")
    for event in events:
        flags = " (paused)" if event.is_paused else ""
        print(f"  {event.id}  {event.status.value:<9}{flags}  {event.scheduled_at}  {event.title}")


def cmd_leaderboard(data_dir: str, event_id: str) -> None:
    coordinator = _coordinator(data_dir)
    event = coordinator.get_event(event_id)
    ranked = coordinator.get_leaderboard(event_id)

    print(f"[PT] Leaderboard for {event.title!r} ({event.status.value})")
    for rank, guest in enumerate(ranked, start=1):
        print(
            f"  {rank:>3}. {guest.display_name:<24} {guest.score:>6} pts"
            f"  {guest.correct_answers}/{guest.rounds_played} correct"
        )


def cmd_analytics(data_dir: str, event_id: str) -> None:
    coordinator = _coordinator(data_dir)
    analytics = coordinator.get_session_analytics(event_id)
    print(json.dumps(analytics.model_dump(mode="json"), indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Phototheology CLI")
    parser.add_argument(
        "--data-dir",
        default=str(settings.data_dir),
        help="Runtime data directory (default: PT_DATA_DIR or 'runtime/data')",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # extract
    p_extract = subparsers.add_parser(
        "extract", help="Print the scripture references found in a text"
    )
    p_extract.add_argument("source", help="Path to a text/HTML file, or '-' for stdin")
    p_extract.add_argument(
        "--strict",
        action="store_true",
        help="Drop references with out-of-range chapters or backwards verse ranges",
    )

    # strip
    p_strip = subparsers.add_parser(
        "strip", help="Remove markup tags and HTML entities from a text"
    )
    p_strip.add_argument("source", help="Path to a text/HTML file, or '-' for stdin")

    # events
    p_events = subparsers.add_parser("events", help="List stored GuestHouse events")
    p_events.add_argument("--host-id", default=None, help="Only events of this host")
    p_events.add_argument(
        "--status",
        action="append",
        choices=[s.value for s in EventStatus],
        help="Only events with this status (repeatable)",
    )

    # leaderboard
    p_leaderboard = subparsers.add_parser("leaderboard", help="Print an event's leaderboard")
    p_leaderboard.add_argument("event_id", help="Event ID")

    # analytics
    p_analytics = subparsers.add_parser("analytics", help="Print an event's session analytics")
    p_analytics.add_argument("event_id", help="Event ID")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command: str = args.command

    try:
        if command == "extract":
            cmd_extract(source=args.source, strict=args.strict)
        elif command == "strip":
            cmd_strip(source=args.source)
        elif command == "events":
            cmd_events(data_dir=args.data_dir, host_id=args.host_id, statuses=args.status)
        elif command == "leaderboard":
            cmd_leaderboard(data_dir=args.data_dir, event_id=args.event_id)
        elif command == "analytics":
            cmd_analytics(data_dir=args.data_dir, event_id=args.event_id)
        else:
            parser.error(f"Unknown command: {command}")
    except (FileNotFoundError, NotFoundError) as e:
        print(f"[PT] ✗ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
