"""LiveSessionCoordinator implementation.

Responsible for:
- sequencing an event's prompts, with exactly one active prompt at a time
- the event lifecycle: scheduled -> live -> completed (completed is terminal)
- guest joins, response submission, grading and bonus points
- telling every participant about each change through StateChangePublisher

Authority model:
- every mutating call takes an explicit SessionContext
- host-only operations require role=host AND the event's host_id
- guests may only submit responses for their own guest id

Consistency notes:
- advancing is two writes (deactivate current, then activate next); a
  reader in between may see no active prompt and should show "waiting"
- score changes are atomic increments in the store, never read-then-write
- publishing happens after the write; a failed publish does not undo it
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from exceptions.exceptions import (
    EventCompletedError,
    InvalidTransitionError,
    NoPromptsError,
    NotAuthorizedError,
    PromptNotActiveError,
)
from ..models.session_models import (
    ActorRole,
    Event,
    EventStatus,
    Guest,
    MessageType,
    PromptType,
    Response,
    SessionContext,
    SessionPrompt,
    utc_now,
)
from ..realtime.notifier import StateChangePublisher
from ..store.guesthouse_store import GuestHouseStore
from .session_analytics import SessionAnalytics, compute_session_analytics, rank_guests


logger = logging.getLogger(__name__)


class LiveSessionCoordinator:
    """Host-authoritative state machine for GuestHouse live sessions.

    Parameters
    ----------
    store:
        GuestHouseStore holding events, prompts, guests and responses.
    publisher:
        StateChangePublisher used to notify participants. If None, changes
        are stored but nobody is told.
    log_store:
        Optional activity log (anything with `log_event(type, payload)`).
    default_max_guests:
        Capacity used when an event is created without one.
    """

    def __init__(
        self,
        store: GuestHouseStore,
        publisher: Optional[StateChangePublisher] = None,
        log_store: Optional[object] = None,
        default_max_guests: int = 50,
    ) -> None:
        self.store = store
        self.publisher = publisher or StateChangePublisher()
        self.log_store = log_store
        self.default_max_guests = default_max_guests

    # ------------------------------------------------------------------
    # Event setup
    # ------------------------------------------------------------------

    def create_event(
        self,
        ctx: SessionContext,
        title: str,
        description: Optional[str] = None,
        scheduled_at: Optional[datetime] = None,
        max_guests: Optional[int] = None,
    ) -> Event:
        """Create a scheduled event owned by the calling host."""
        if not ctx.is_host:
            raise NotAuthorizedError(ctx.actor_id, "create events")

        fields: Dict[str, Any] = {
            "host_id": ctx.actor_id,
            "title": title,
            "description": description,
            "max_guests": max_guests if max_guests is not None else self.default_max_guests,
        }
        if scheduled_at is not None:
            if scheduled_at.tzinfo is None:
                scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
            fields["scheduled_at"] = scheduled_at.astimezone(timezone.utc).isoformat()

        event = self.store.create_event(Event(**fields))
        logger.info("[SESSION] Created event %s (%r) for host %s", event.id, title, ctx.actor_id)
        self._log("event_created", {"event_id": event.id, "host_id": ctx.actor_id})
        return event

    def get_event(self, event_id: str) -> Event:
        return self.store.get_event(event_id)

    def list_events(
        self,
        host_id: Optional[str] = None,
        statuses: Optional[Iterable[EventStatus]] = None,
    ) -> List[Event]:
        return self.store.list_events(host_id=host_id, statuses=statuses)

    def get_prompts(self, event_id: str) -> List[SessionPrompt]:
        return self.store.list_prompts(event_id)

    def get_active_prompt(self, event_id: str) -> Optional[SessionPrompt]:
        """Return the active prompt, or None while waiting (between prompts, or not live)."""
        for prompt in self.store.list_prompts(event_id):
            if prompt.is_active:
                return prompt
        return None

    def add_prompt(
        self,
        ctx: SessionContext,
        event_id: str,
        prompt_type: PromptType,
        prompt_data: Optional[Dict[str, Any]] = None,
    ) -> SessionPrompt:
        """Append an inactive prompt at the end of the event's sequence."""
        event = self.require_host(ctx, event_id, "add prompts")
        self._require_not_completed(event, "add prompts to")

        prompt = self.store.add_prompt(
            SessionPrompt(
                event_id=event_id,
                prompt_type=PromptType(prompt_type),
                sequence_order=self.store.next_sequence_order(event_id),
                prompt_data=dict(prompt_data or {}),
            )
        )
        self.publisher.publish_state_change(
            event_id, table="prompts", records=[prompt], change="INSERT"
        )
        return prompt

    def launch_prompt(
        self,
        ctx: SessionContext,
        event_id: str,
        prompt_type: PromptType,
        prompt_data: Optional[Dict[str, Any]] = None,
    ) -> SessionPrompt:
        """Append a prompt and make it the active one right away.

        A scheduled event goes live as part of the launch.
        """
        event = self.require_host(ctx, event_id, "launch prompts")
        self._require_not_completed(event, "launch prompts in")

        prompt = self.add_prompt(ctx, event_id, prompt_type, prompt_data)
        previous = self._deactivate_all(event_id)
        prompt = self._activate(prompt)

        if event.status == EventStatus.SCHEDULED:
            event = self.store.update_event(event_id, status=EventStatus.LIVE, is_paused=False)
            self._publish_session_update(event)

        self._publish_prompt_update(event_id, prompt, previous)
        logger.info("[SESSION] Launched %s prompt %s in event %s", prompt.prompt_type.value, prompt.id, event_id)
        self._log("prompt_launched", {"event_id": event_id, "prompt_id": prompt.id})
        return prompt

    def join_event(
        self,
        event_id: str,
        display_name: str,
        user_id: Optional[str] = None,
    ) -> Guest:
        """Check a guest into an event.

        Raises
        ------
        EventCompletedError
            The event is over; the caller should show the results instead.
        EventFullError
            The event has reached max_guests.
        """
        event = self.store.get_event(event_id)
        if event.status == EventStatus.COMPLETED:
            raise EventCompletedError(event_id)

        display_name = display_name.strip()
        if not display_name:
            raise ValueError("display_name is empty")

        guest = self.store.add_guest(
            Guest(event_id=event_id, display_name=display_name, user_id=user_id),
            max_guests=event.max_guests,
        )
        self.publisher.publish_state_change(
            event_id, table="guests", records=[guest], change="INSERT"
        )
        logger.info("[SESSION] Guest %s (%r) joined event %s", guest.id, guest.display_name, event_id)
        self._log("guest_joined", {"event_id": event_id, "guest_id": guest.id})
        return guest

    # ------------------------------------------------------------------
    # Session state machine
    # ------------------------------------------------------------------

    def start_session(self, ctx: SessionContext, event_id: str) -> Event:
        """scheduled -> live, activating the first prompt in sequence order."""
        event = self.require_host(ctx, event_id, "start the session")
        if event.status != EventStatus.SCHEDULED:
            raise InvalidTransitionError(event_id, event.status.value, "start")

        prompts = self.store.list_prompts(event_id)
        if not prompts:
            raise NoPromptsError(event_id)

        previous = self._deactivate_all(event_id)
        first = self._activate(prompts[0])
        event = self.store.update_event(event_id, status=EventStatus.LIVE, is_paused=False)

        self._publish_session_update(event)
        self._publish_prompt_update(event_id, first, previous)
        logger.info("[SESSION] Event %s is live with prompt %s", event_id, first.id)
        self._log("session_started", {"event_id": event_id, "prompt_id": first.id})
        return event

    def advance_to_next_prompt(self, ctx: SessionContext, event_id: str) -> Optional[SessionPrompt]:
        """Move to the next prompt in sequence order.

        Returns the newly active prompt, or None if the sequence is exhausted,
        in which case the event is completed.
        """
        event = self.require_host(ctx, event_id, "advance the session")
        if event.status != EventStatus.LIVE:
            raise InvalidTransitionError(event_id, event.status.value, "advance")

        prompts = self.store.list_prompts(event_id)
        current = next((p for p in prompts if p.is_active), None)

        if current is not None:
            upcoming = [p for p in prompts if p.sequence_order > current.sequence_order]
        else:
            # Nothing active (e.g. an earlier advance died between its two
            # writes): resume with the first prompt that never ran.
            upcoming = [p for p in prompts if p.started_at is None]

        previous = self._deactivate_all(event_id)

        if not upcoming:
            event = self.store.update_event(event_id, status=EventStatus.COMPLETED, is_paused=False)
            self._publish_session_update(event)
            self._publish_prompt_update(event_id, None, previous)
            logger.info("[SESSION] Event %s completed after last prompt", event_id)
            self._log("session_completed", {"event_id": event_id})
            return None

        nxt = self._activate(upcoming[0])
        self._publish_prompt_update(event_id, nxt, previous)
        logger.info("[SESSION] Event %s advanced to prompt %s", event_id, nxt.id)
        self._log("prompt_advanced", {"event_id": event_id, "prompt_id": nxt.id})
        return nxt

    def pause_session(self, ctx: SessionContext, event_id: str) -> Event:
        return self._set_paused(ctx, event_id, True)

    def resume_session(self, ctx: SessionContext, event_id: str) -> Event:
        return self._set_paused(ctx, event_id, False)

    def end_session(self, ctx: SessionContext, event_id: str) -> Event:
        """Complete the event now, whatever prompts are left."""
        event = self.require_host(ctx, event_id, "end the session")
        self._require_not_completed(event, "end")

        previous = self._deactivate_all(event_id)
        event = self.store.update_event(event_id, status=EventStatus.COMPLETED, is_paused=False)
        self._publish_session_update(event)
        if previous:
            self._publish_prompt_update(event_id, None, previous)
        logger.info("[SESSION] Event %s ended by host", event_id)
        self._log("session_ended", {"event_id": event_id})
        return event

    # ------------------------------------------------------------------
    # Responses + scoring
    # ------------------------------------------------------------------

    def submit_response(
        self,
        ctx: SessionContext,
        prompt_id: str,
        guest_id: str,
        payload: Dict[str, Any],
    ) -> Response:
        """Store the guest's answer to the active prompt (one per prompt; resubmits overwrite)."""
        if ctx.role != ActorRole.GUEST or ctx.actor_id != guest_id:
            raise NotAuthorizedError(ctx.actor_id, "submit responses", f"for guest {guest_id}")

        guest = self.store.get_guest(guest_id)
        prompt = self.store.get_prompt(prompt_id)
        if guest.event_id != prompt.event_id:
            raise NotAuthorizedError(ctx.actor_id, "submit responses", "prompt belongs to another event")

        event = self.store.get_event(prompt.event_id)
        if event.status != EventStatus.LIVE or not prompt.is_active:
            raise PromptNotActiveError(prompt_id)

        response, created = self.store.upsert_response(prompt_id, guest_id, payload)
        if created:
            guest = self.store.increment_guest_stats(guest_id, rounds_played=1)
            self.publisher.publish_state_change(event.id, table="guests", records=[guest])

        submissions = len(self.store.list_responses(prompt_id=prompt_id))
        self.publisher.publish_state_change(
            event.id,
            MessageType.RESPONSE_SUBMITTED,
            {
                "prompt_id": prompt_id,
                "guest_id": guest_id,
                "response_id": response.id,
                "submission_count": submissions,
            },
        )
        self._log("response_submitted", {"event_id": event.id, "response_id": response.id, "created": created})
        return response

    def grade_response(
        self,
        ctx: SessionContext,
        response_id: str,
        is_correct: bool,
        points: int,
    ) -> Response:
        """Grade a response once and add its points to the guest's score."""
        if points < 0:
            raise ValueError("points must be zero or positive")

        response = self.store.get_response(response_id)
        self.require_host(ctx, response.event_id, "grade responses")

        response = self.store.mark_graded(response_id, is_correct, points)
        guest = self.store.increment_guest_stats(
            response.guest_id,
            score=points,
            correct_answers=1 if is_correct else 0,
        )

        self.publisher.publish_state_change(
            response.event_id,
            MessageType.SCORE_UPDATE,
            {
                "guest_id": guest.id,
                "prompt_id": response.prompt_id,
                "response_id": response.id,
                "is_correct": is_correct,
                "points": points,
                "score": guest.score,
                "correct_answers": guest.correct_answers,
            },
            table="guests",
            records=[guest],
        )
        logger.info(
            "[SESSION] Graded response %s: correct=%s points=%d (guest %s now %d)",
            response_id, is_correct, points, guest.id, guest.score,
        )
        self._log("response_graded", {"response_id": response_id, "points": points, "is_correct": is_correct})
        return response

    def award_bonus_points(
        self,
        ctx: SessionContext,
        guest_id: str,
        points: int,
        reason: str,
    ) -> Guest:
        """Add host-discretion points outside of grading."""
        if points < 0:
            raise ValueError("points must be zero or positive")

        guest = self.store.get_guest(guest_id)
        self.require_host(ctx, guest.event_id, "award bonus points")

        guest = self.store.increment_guest_stats(guest_id, score=points)
        self.publisher.publish_state_change(
            guest.event_id,
            MessageType.BONUS_POINTS,
            {
                "guest_id": guest.id,
                "display_name": guest.display_name,
                "points": points,
                "reason": reason,
                "score": guest.score,
            },
            table="guests",
            records=[guest],
        )
        logger.info("[SESSION] Bonus %d points to guest %s: %s", points, guest_id, reason)
        self._log("bonus_points", {"guest_id": guest_id, "points": points, "reason": reason})
        return guest

    def get_leaderboard(self, event_id: str) -> List[Guest]:
        """Guests by score descending; ties go to whoever joined first."""
        return rank_guests(self.store.list_guests(event_id))

    def get_session_analytics(self, event_id: str) -> SessionAnalytics:
        return compute_session_analytics(
            event_id,
            guests=self.store.list_guests(event_id),
            prompts=self.store.list_prompts(event_id),
            responses=self.store.list_responses(event_id=event_id),
        )

    # ------------------------------------------------------------------
    # Host broadcast extras
    # ------------------------------------------------------------------

    def send_announcement(self, ctx: SessionContext, event_id: str, message: str) -> None:
        self.require_host(ctx, event_id, "send announcements")
        message = message.strip()
        if not message:
            raise ValueError("announcement message is empty")
        self.publisher.publish_state_change(
            event_id,
            MessageType.ANNOUNCEMENT,
            {"message": message, "timestamp": utc_now()},
        )

    def extend_time(self, ctx: SessionContext, event_id: str, seconds: int) -> None:
        self.require_host(ctx, event_id, "extend time")
        if seconds <= 0:
            raise ValueError("seconds must be positive")
        self.publisher.publish_state_change(
            event_id,
            MessageType.TIME_EXTENSION,
            {"seconds": seconds},
        )

    def toggle_reactions(self, ctx: SessionContext, event_id: str, muted: bool) -> Event:
        self.require_host(ctx, event_id, "toggle reactions")
        event = self.store.update_event(event_id, reactions_muted=muted)
        self.publisher.publish_state_change(
            event_id,
            MessageType.REACTIONS_TOGGLE,
            {"muted": muted},
            table="events",
            records=[event],
        )
        return event

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def require_host(self, ctx: SessionContext, event_id: str, action: str) -> Event:
        event = self.store.get_event(event_id)
        if not ctx.is_host or ctx.actor_id != event.host_id:
            raise NotAuthorizedError(ctx.actor_id, action, f"not the host of event {event_id}")
        return event

    @staticmethod
    def _require_not_completed(event: Event, action: str) -> None:
        if event.status == EventStatus.COMPLETED:
            raise InvalidTransitionError(event.id, event.status.value, action)

    def _set_paused(self, ctx: SessionContext, event_id: str, paused: bool) -> Event:
        action = "pause" if paused else "resume"
        event = self.require_host(ctx, event_id, f"{action} the session")
        if event.status != EventStatus.LIVE:
            raise InvalidTransitionError(event_id, event.status.value, action)

        event = self.store.update_event(event_id, is_paused=paused)
        self._publish_session_update(event)
        logger.info("[SESSION] Event %s %sd", event_id, action)
        return event

    def _deactivate_all(self, event_id: str) -> List[SessionPrompt]:
        """Deactivate every active prompt of the event and return them."""
        deactivated = []
        for prompt in self.store.list_prompts(event_id):
            if prompt.is_active:
                deactivated.append(
                    self.store.update_prompt(prompt.id, is_active=False, ended_at=utc_now())
                )
        if deactivated:
            self.publisher.publish_state_change(event_id, table="prompts", records=deactivated)
        return deactivated

    def _activate(self, prompt: SessionPrompt) -> SessionPrompt:
        prompt = self.store.update_prompt(prompt.id, is_active=True, started_at=utc_now(), ended_at=None)
        self.publisher.publish_state_change(prompt.event_id, table="prompts", records=[prompt])
        return prompt

    def _publish_session_update(self, event: Event) -> None:
        self.publisher.publish_state_change(
            event.id,
            MessageType.SESSION_UPDATE,
            {"status": event.status.value, "is_paused": event.is_paused},
            table="events",
            records=[event],
        )

    def _publish_prompt_update(
        self,
        event_id: str,
        prompt: Optional[SessionPrompt],
        previous: List[SessionPrompt],
    ) -> None:
        payload: Dict[str, Any] = {
            "previous_prompt_id": previous[0].id if previous else None,
            "prompt_id": None,
        }
        if prompt is not None:
            payload.update(
                prompt_id=prompt.id,
                prompt_type=prompt.prompt_type.value,
                prompt_data=prompt.prompt_data,
                sequence_order=prompt.sequence_order,
            )
        self.publisher.publish_state_change(event_id, MessageType.PROMPT_UPDATE, payload)

    def _log(self, event_type: str, payload: dict) -> None:
        if self.log_store is None:
            return
        try:
            self.log_store.log_event(event_type, payload)
        except OSError as exc:
            # The state change itself already succeeded.
            logger.warning("[SESSION] Could not write activity %s: %s", event_type, exc)
