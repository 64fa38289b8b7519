"""
LogStore: append-only activity log for GuestHouse sessions.

Writes one JSON object per line to:

    <log_dir>/activity_YYYY-MM-DD.jsonl

The date is the UTC date at the time of writing. This is an audit trail of
host and guest actions (session started, response graded, ...), separate
from the process log configured through `logging`.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


class LogStore:
    """Date-based JSONL activity log."""

    def __init__(self, log_dir: str = "runtime/data/logs") -> None:
        self.log_dir = Path(log_dir)

    def _path_for(self, day: str) -> Path:
        return self.log_dir / f"activity_{day}.jsonl"

    def log_event(self, event_type: str, payload: dict) -> None:
        """Append an event to today's log file."""
        now = datetime.now(timezone.utc)
        entry = {
            "timestamp": now.isoformat(),
            "event_type": event_type,
            "payload": payload,
        }
        self.log_dir.mkdir(parents=True, exist_ok=True)
        with self._path_for(now.strftime("%Y-%m-%d")).open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False, default=str))
            f.write("\n")

    def read_events(self, day: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return the entries logged on `day` (YYYY-MM-DD, default today)."""
        day = day or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        path = self._path_for(day)
        if not path.is_file():
            return []

        entries = []
        with path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("[LOG] Skipping malformed line %d in %s", line_no, path)
        return entries


class ConsoleLogStore:
    """Log sink used during local development: activity goes to the process log."""

    def log_event(self, event_type: str, payload: dict) -> None:
        logger.info("[ACTIVITY] %s: %s", event_type, payload)
