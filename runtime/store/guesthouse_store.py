"""GuestHouse storage: events, prompts, guests and responses.

This plays the part of the relational backing store for live sessions.
The design mirrors the runtime's other stores:
- In-memory dicts are the source of truth during a run.
- If a data_dir is configured, every event is also written as one JSON
  snapshot to `data_dir/guesthouse/<event_id>.json` (event, prompts,
  guests, responses), and all snapshots are loaded back on start.

Every write happens under one lock. Score changes go through
`increment_guest_stats`, which adds deltas in place (the equivalent of
`UPDATE guests SET score = score + :delta`); callers never read a score,
add to it and write it back. Reads return copies, so a caller holding a
model cannot change stored state by mutating it.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from exceptions.exceptions import (
    EventFullError,
    EventNotFoundError,
    GuestNotFoundError,
    PromptNotFoundError,
    ResponseLockedError,
    ResponseNotFoundError,
)
from ..models.session_models import (
    Event,
    EventSnapshot,
    EventStatus,
    Guest,
    Response,
    SessionPrompt,
    utc_now,
)


logger = logging.getLogger(__name__)


def _scheduled_key(value: str) -> datetime:
    """Parse a stored scheduled_at; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class GuestHouseStore:
    """In-memory + optional file-backed store for live sessions.

    Parameters
    ----------
    data_dir:
        Base directory for snapshot files. If provided, snapshots live in
        `data_dir/guesthouse/` and are loaded when the store is created.
        If not provided, nothing touches the filesystem.
    """

    def __init__(self, data_dir: Optional[str] = None) -> None:
        self._lock = threading.RLock()
        self._snapshots: Dict[str, EventSnapshot] = {}

        # Secondary indexes: row id -> owning event id.
        self._prompt_events: Dict[str, str] = {}
        self._guest_events: Dict[str, str] = {}
        self._response_events: Dict[str, str] = {}

        self._data_dir: Optional[Path] = Path(data_dir) if data_dir else None
        if self._data_dir is not None:
            self._snapshots_dir.mkdir(parents=True, exist_ok=True)
            self._load_snapshots()

    @property
    def _snapshots_dir(self) -> Path:
        base = self._data_dir if self._data_dir is not None else Path("runtime/data")
        return base / "guesthouse"

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def create_event(self, event: Event) -> Event:
        with self._lock:
            self._snapshots[event.id] = EventSnapshot(event=event.model_copy(deep=True))
            self._persist(event.id)
            return event.model_copy(deep=True)

    def get_event(self, event_id: str) -> Event:
        with self._lock:
            return self._snapshot(event_id).event.model_copy(deep=True)

    def list_events(
        self,
        host_id: Optional[str] = None,
        statuses: Optional[Iterable[EventStatus]] = None,
    ) -> List[Event]:
        """Return events ordered by scheduled time, optionally filtered."""
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            events = [
                snap.event.model_copy(deep=True)
                for snap in self._snapshots.values()
                if (host_id is None or snap.event.host_id == host_id)
                and (wanted is None or snap.event.status in wanted)
            ]
        return sorted(events, key=lambda e: _scheduled_key(e.scheduled_at))

    def update_event(self, event_id: str, **changes) -> Event:
        with self._lock:
            snap = self._snapshot(event_id)
            snap.event = snap.event.model_copy(update=changes)
            self._persist(event_id)
            return snap.event.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def add_prompt(self, prompt: SessionPrompt) -> SessionPrompt:
        with self._lock:
            snap = self._snapshot(prompt.event_id)
            snap.prompts.append(prompt.model_copy(deep=True))
            self._prompt_events[prompt.id] = prompt.event_id
            self._persist(prompt.event_id)
            return prompt.model_copy(deep=True)

    def next_sequence_order(self, event_id: str) -> int:
        with self._lock:
            prompts = self._snapshot(event_id).prompts
            return max((p.sequence_order for p in prompts), default=0) + 1

    def get_prompt(self, prompt_id: str) -> SessionPrompt:
        with self._lock:
            return self._find_prompt(prompt_id).model_copy(deep=True)

    def list_prompts(self, event_id: str) -> List[SessionPrompt]:
        """Return the event's prompts in sequence order."""
        with self._lock:
            prompts = [p.model_copy(deep=True) for p in self._snapshot(event_id).prompts]
        return sorted(prompts, key=lambda p: p.sequence_order)

    def update_prompt(self, prompt_id: str, **changes) -> SessionPrompt:
        with self._lock:
            event_id = self._prompt_events.get(prompt_id)
            if event_id is None:
                raise PromptNotFoundError(prompt_id)
            prompts = self._snapshot(event_id).prompts
            for idx, prompt in enumerate(prompts):
                if prompt.id == prompt_id:
                    prompts[idx] = prompt.model_copy(update=changes)
                    self._persist(event_id)
                    return prompts[idx].model_copy(deep=True)
            raise PromptNotFoundError(prompt_id)

    # ------------------------------------------------------------------
    # Guests
    # ------------------------------------------------------------------

    def add_guest(self, guest: Guest, max_guests: Optional[int] = None) -> Guest:
        """Insert a guest, enforcing the event's capacity in the same write."""
        with self._lock:
            snap = self._snapshot(guest.event_id)
            if max_guests is not None and len(snap.guests) >= max_guests:
                raise EventFullError(guest.event_id, max_guests)

            stored = guest.model_copy(update={"join_order": snap.next_join_order})
            snap.next_join_order += 1
            snap.guests.append(stored)
            self._guest_events[stored.id] = stored.event_id
            self._persist(stored.event_id)
            return stored.model_copy(deep=True)

    def get_guest(self, guest_id: str) -> Guest:
        with self._lock:
            return self._find_guest(guest_id).model_copy(deep=True)

    def list_guests(self, event_id: str) -> List[Guest]:
        """Return the event's guests in join order."""
        with self._lock:
            guests = [g.model_copy(deep=True) for g in self._snapshot(event_id).guests]
        return sorted(guests, key=lambda g: g.join_order)

    def increment_guest_stats(
        self,
        guest_id: str,
        score: int = 0,
        correct_answers: int = 0,
        rounds_played: int = 0,
    ) -> Guest:
        """Atomically add the given deltas to a guest's counters."""
        with self._lock:
            guest = self._find_guest(guest_id)
            guest.score += score
            guest.correct_answers += correct_answers
            guest.rounds_played += rounds_played
            self._persist(guest.event_id)
            return guest.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def upsert_response(
        self,
        prompt_id: str,
        guest_id: str,
        response_data: dict,
    ) -> Tuple[Response, bool]:
        """Insert or overwrite the single response for (prompt, guest).

        Returns the stored response and whether it was newly created.

        Raises
        ------
        ResponseLockedError
            If the existing response has already been graded.
        """
        with self._lock:
            prompt = self._find_prompt(prompt_id)
            guest = self._find_guest(guest_id)
            snap = self._snapshot(prompt.event_id)

            for idx, existing in enumerate(snap.responses):
                if existing.prompt_id == prompt_id and existing.guest_id == guest_id:
                    if existing.is_graded:
                        raise ResponseLockedError(existing.id)
                    snap.responses[idx] = existing.model_copy(
                        update={"response_data": dict(response_data), "submitted_at": utc_now()}
                    )
                    self._persist(prompt.event_id)
                    return snap.responses[idx].model_copy(deep=True), False

            response = Response(
                prompt_id=prompt_id,
                guest_id=guest.id,
                event_id=prompt.event_id,
                response_data=dict(response_data),
            )
            snap.responses.append(response)
            self._response_events[response.id] = prompt.event_id
            self._persist(prompt.event_id)
            return response.model_copy(deep=True), True

    def mark_graded(self, response_id: str, is_correct: bool, points: int) -> Response:
        """Stamp a response with its grade. A response is graded at most once."""
        with self._lock:
            response = self._find_response(response_id)
            if response.is_graded:
                raise ResponseLockedError(response_id)
            response.is_correct = is_correct
            response.points_earned = points
            response.graded_at = utc_now()
            self._persist(response.event_id)
            return response.model_copy(deep=True)

    def get_response(self, response_id: str) -> Response:
        with self._lock:
            return self._find_response(response_id).model_copy(deep=True)

    def list_responses(
        self,
        event_id: Optional[str] = None,
        prompt_id: Optional[str] = None,
    ) -> List[Response]:
        with self._lock:
            if event_id is None and prompt_id is not None:
                event_id = self._find_prompt(prompt_id).event_id
            if event_id is None:
                raise ValueError("list_responses needs an event_id or a prompt_id")
            responses = [
                r.model_copy(deep=True)
                for r in self._snapshot(event_id).responses
                if prompt_id is None or r.prompt_id == prompt_id
            ]
        return responses

    # ------------------------------------------------------------------
    # Internal helpers (callers hold the lock)
    # ------------------------------------------------------------------

    def _snapshot(self, event_id: str) -> EventSnapshot:
        snap = self._snapshots.get(event_id)
        if snap is None:
            raise EventNotFoundError(event_id)
        return snap

    def _find_prompt(self, prompt_id: str) -> SessionPrompt:
        event_id = self._prompt_events.get(prompt_id)
        if event_id is not None:
            for prompt in self._snapshot(event_id).prompts:
                if prompt.id == prompt_id:
                    return prompt
        raise PromptNotFoundError(prompt_id)

    def _find_guest(self, guest_id: str) -> Guest:
        event_id = self._guest_events.get(guest_id)
        if event_id is not None:
            for guest in self._snapshot(event_id).guests:
                if guest.id == guest_id:
                    return guest
        raise GuestNotFoundError(guest_id)

    def _find_response(self, response_id: str) -> Response:
        event_id = self._response_events.get(response_id)
        if event_id is not None:
            for response in self._snapshot(event_id).responses:
                if response.id == response_id:
                    return response
        raise ResponseNotFoundError(response_id)

    def _index(self, snap: EventSnapshot) -> None:
        event_id = snap.event.id
        for prompt in snap.prompts:
            self._prompt_events[prompt.id] = event_id
        for guest in snap.guests:
            self._guest_events[guest.id] = event_id
        for response in snap.responses:
            self._response_events[response.id] = event_id

    def _load_snapshots(self) -> None:
        for path in sorted(self._snapshots_dir.glob("*.json")):
            try:
                with path.open("r", encoding="utf-8") as f:
                    snap = EventSnapshot(**json.load(f))
            except (OSError, ValueError) as exc:
                logger.warning("[STORE] Skipping unreadable snapshot %s: %s", path, exc)
                continue
            self._snapshots[snap.event.id] = snap
            self._index(snap)
        logger.info("[STORE] Loaded %d event snapshot(s) from %s", len(self._snapshots), self._snapshots_dir)

    def _persist(self, event_id: str) -> None:
        """Write the event's snapshot to disk if a data_dir is configured."""
        if self._data_dir is None:
            return

        snapshots_dir = self._snapshots_dir
        snapshots_dir.mkdir(parents=True, exist_ok=True)
        path = snapshots_dir / f"{event_id}.json"

        with path.open("w", encoding="utf-8") as f:
            json.dump(self._snapshots[event_id].model_dump(mode="json"), f, ensure_ascii=False, indent=2)
