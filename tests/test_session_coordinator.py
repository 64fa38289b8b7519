"""
Tests for LiveSessionCoordinator.

Verifies:
- The scheduled -> live -> completed state machine
- Exactly one active prompt while live, none once completed
- Host-only operations reject guests and other hosts
- Responses, grading and bonus points keep scores consistent
- Every change is published on the broadcast and row-change channels
"""
from datetime import datetime, timedelta, timezone

import pytest

from exceptions.exceptions import (
    EventCompletedError,
    EventFullError,
    InvalidTransitionError,
    NoPromptsError,
    NotAuthorizedError,
    PromptNotActiveError,
    ResponseLockedError,
)
from runtime.agents.session_coordinator import LiveSessionCoordinator
from runtime.models.session_models import EventStatus, MessageType, PromptType
from runtime.realtime.notifier import StateChangePublisher, broadcast_channel, row_channel


def _active(coordinator, event_id):
    return [p for p in coordinator.get_prompts(event_id) if p.is_active]


def _messages(hub, event_id, message_type=None):
    messages = hub.history(broadcast_channel(event_id))
    if message_type is None:
        return messages
    return [m for m in messages if m.event == message_type]


# =============================================================================
# Event setup
# =============================================================================


class TestEventSetup:

    def test_create_event_defaults(self, coordinator, host_ctx):
        event = coordinator.create_event(host_ctx, title="Sabbath study")
        assert event.status == EventStatus.SCHEDULED
        assert event.host_id == host_ctx.actor_id
        assert event.max_guests == 50
        assert coordinator.list_events(host_id=host_ctx.actor_id) == [event]

    def test_guest_cannot_create_event(self, coordinator, as_guest):
        with pytest.raises(NotAuthorizedError):
            coordinator.create_event(as_guest("g-1"), title="Nope")

    def test_prompts_appended_in_order(self, coordinator, event, prompts):
        assert [p.sequence_order for p in prompts] == [1, 2, 3]
        assert not any(p.is_active for p in coordinator.get_prompts(event.id))

    def test_other_host_cannot_add_prompts(self, coordinator, event, other_host_ctx):
        with pytest.raises(NotAuthorizedError):
            coordinator.add_prompt(other_host_ctx, event.id, PromptType.DRILL_DROP)

    def test_list_events_by_utc_time(self, coordinator, host_ctx):
        late = coordinator.create_event(
            host_ctx, title="late", scheduled_at=datetime(2026, 1, 1, 10, tzinfo=timezone(timedelta(hours=-5)))
        )
        early = coordinator.create_event(
            host_ctx, title="early", scheduled_at=datetime(2026, 1, 1, 12, tzinfo=timezone.utc)
        )
        naive = coordinator.create_event(host_ctx, title="naive", scheduled_at=datetime(2026, 1, 1, 13))

        assert late.scheduled_at == "2026-01-01T15:00:00+00:00"
        assert naive.scheduled_at == "2026-01-01T13:00:00+00:00"
        listed = coordinator.list_events(host_id=host_ctx.actor_id)
        assert [e.title for e in listed] == ["early", "naive", "late"]


# =============================================================================
# State machine
# =============================================================================


class TestStateMachine:

    def test_start_requires_prompts(self, coordinator, host_ctx, event):
        with pytest.raises(NoPromptsError):
            coordinator.start_session(host_ctx, event.id)
        assert coordinator.get_event(event.id).status == EventStatus.SCHEDULED

    def test_start_activates_first_prompt(self, coordinator, host_ctx, event, prompts):
        started = coordinator.start_session(host_ctx, event.id)

        assert started.status == EventStatus.LIVE
        active = _active(coordinator, event.id)
        assert [p.id for p in active] == [prompts[0].id]
        assert active[0].started_at is not None

    def test_start_twice_rejected(self, coordinator, host_ctx, event, prompts):
        coordinator.start_session(host_ctx, event.id)
        with pytest.raises(InvalidTransitionError):
            coordinator.start_session(host_ctx, event.id)

    def test_advance_through_all_prompts(self, coordinator, host_ctx, event, prompts):
        coordinator.start_session(host_ctx, event.id)

        for expected in prompts[1:]:
            nxt = coordinator.advance_to_next_prompt(host_ctx, event.id)
            assert nxt.id == expected.id
            assert [p.id for p in _active(coordinator, event.id)] == [expected.id]

        assert coordinator.advance_to_next_prompt(host_ctx, event.id) is None
        assert coordinator.get_event(event.id).status == EventStatus.COMPLETED
        assert _active(coordinator, event.id) == []
        assert all(p.ended_at is not None for p in coordinator.get_prompts(event.id))

    def test_completed_is_terminal(self, coordinator, host_ctx, event, prompts):
        coordinator.start_session(host_ctx, event.id)
        coordinator.end_session(host_ctx, event.id)

        for action in (
            coordinator.start_session,
            coordinator.advance_to_next_prompt,
            coordinator.pause_session,
            coordinator.end_session,
        ):
            with pytest.raises(InvalidTransitionError):
                action(host_ctx, event.id)
        with pytest.raises(InvalidTransitionError):
            coordinator.add_prompt(host_ctx, event.id, PromptType.DRILL_DROP)
        assert coordinator.get_event(event.id).status == EventStatus.COMPLETED

    def test_advance_requires_live(self, coordinator, host_ctx, event, prompts):
        with pytest.raises(InvalidTransitionError):
            coordinator.advance_to_next_prompt(host_ctx, event.id)

    def test_advance_recovers_when_nothing_active(self, coordinator, host_ctx, store, event, prompts):
        coordinator.start_session(host_ctx, event.id)
        # Simulate an advance that stopped between its two writes.
        store.update_prompt(prompts[0].id, is_active=False)

        nxt = coordinator.advance_to_next_prompt(host_ctx, event.id)
        assert nxt.id == prompts[1].id

    def test_pause_and_resume(self, coordinator, host_ctx, event, prompts):
        with pytest.raises(InvalidTransitionError):
            coordinator.pause_session(host_ctx, event.id)

        coordinator.start_session(host_ctx, event.id)
        assert coordinator.pause_session(host_ctx, event.id).is_paused
        assert not coordinator.resume_session(host_ctx, event.id).is_paused

    def test_end_session_early(self, coordinator, host_ctx, event, prompts):
        coordinator.start_session(host_ctx, event.id)
        ended = coordinator.end_session(host_ctx, event.id)
        assert ended.status == EventStatus.COMPLETED
        assert _active(coordinator, event.id) == []

    def test_launch_prompt_goes_live(self, coordinator, host_ctx, event, prompts):
        launched = coordinator.launch_prompt(
            host_ctx, event.id, PromptType.SILENT_COEXEGESIS, {"passage": "Mark 4:35-41"}
        )
        assert coordinator.get_event(event.id).status == EventStatus.LIVE
        assert [p.id for p in _active(coordinator, event.id)] == [launched.id]
        assert launched.sequence_order == 4

    def test_only_event_host_drives_session(self, coordinator, other_host_ctx, as_guest, event, prompts):
        for ctx in (other_host_ctx, as_guest("g-1")):
            with pytest.raises(NotAuthorizedError):
                coordinator.start_session(ctx, event.id)
        assert coordinator.get_event(event.id).status == EventStatus.SCHEDULED


# =============================================================================
# Guests + responses
# =============================================================================


class TestGuestsAndResponses:

    def test_join_blank_name(self, coordinator, store, event):
        with pytest.raises(ValueError):
            coordinator.join_event(event.id, "   ")
        assert store.list_guests(event.id) == []

    def test_join_until_full(self, coordinator, event):
        for name in ("Ana", "Ben", "Cy", "Di"):
            coordinator.join_event(event.id, name)
        with pytest.raises(EventFullError):
            coordinator.join_event(event.id, "Eli")

    def test_join_completed_event(self, coordinator, host_ctx, event, prompts):
        coordinator.start_session(host_ctx, event.id)
        coordinator.end_session(host_ctx, event.id)
        with pytest.raises(EventCompletedError):
            coordinator.join_event(event.id, "Late")

    def test_submit_only_to_active_prompt(self, coordinator, host_ctx, as_guest, event, prompts):
        guest = coordinator.join_event(event.id, "Ana")
        with pytest.raises(PromptNotActiveError):
            coordinator.submit_response(as_guest(guest.id), prompts[0].id, guest.id, {"answer": "x"})

        coordinator.start_session(host_ctx, event.id)
        with pytest.raises(PromptNotActiveError):
            coordinator.submit_response(as_guest(guest.id), prompts[1].id, guest.id, {"answer": "x"})

    def test_submit_as_someone_else(self, coordinator, host_ctx, as_guest, event, prompts):
        ana = coordinator.join_event(event.id, "Ana")
        ben = coordinator.join_event(event.id, "Ben")
        coordinator.start_session(host_ctx, event.id)
        with pytest.raises(NotAuthorizedError):
            coordinator.submit_response(as_guest(ben.id), prompts[0].id, ana.id, {"answer": "x"})

    def test_resubmit_counts_one_round(self, coordinator, host_ctx, as_guest, store, event, prompts):
        guest = coordinator.join_event(event.id, "Ana")
        coordinator.start_session(host_ctx, event.id)

        first = coordinator.submit_response(as_guest(guest.id), prompts[0].id, guest.id, {"answer": "a"})
        second = coordinator.submit_response(as_guest(guest.id), prompts[0].id, guest.id, {"answer": "b"})

        assert first.id == second.id
        assert store.get_guest(guest.id).rounds_played == 1
        assert len(store.list_responses(prompt_id=prompts[0].id)) == 1

    def test_grading_adds_points(self, coordinator, host_ctx, as_guest, store, event, prompts):
        guest = coordinator.join_event(event.id, "Ana")
        coordinator.start_session(host_ctx, event.id)
        r1 = coordinator.submit_response(as_guest(guest.id), prompts[0].id, guest.id, {"answer": "Numbers 21"})
        coordinator.grade_response(host_ctx, r1.id, True, 10)

        coordinator.advance_to_next_prompt(host_ctx, event.id)
        r2 = coordinator.submit_response(as_guest(guest.id), prompts[1].id, guest.id, {"answer": "Rom 8"})
        coordinator.grade_response(host_ctx, r2.id, False, 0)

        stored = store.get_guest(guest.id)
        assert stored.score == 10
        assert stored.correct_answers == 1
        assert stored.rounds_played == 2
        assert stored.score == sum(r.points_earned for r in store.list_responses(event_id=event.id))

    def test_grading_rules(self, coordinator, host_ctx, as_guest, event, prompts):
        guest = coordinator.join_event(event.id, "Ana")
        coordinator.start_session(host_ctx, event.id)
        response = coordinator.submit_response(as_guest(guest.id), prompts[0].id, guest.id, {})

        with pytest.raises(NotAuthorizedError):
            coordinator.grade_response(as_guest(guest.id), response.id, True, 100)
        with pytest.raises(ValueError):
            coordinator.grade_response(host_ctx, response.id, True, -5)

        coordinator.grade_response(host_ctx, response.id, True, 10)
        with pytest.raises(ResponseLockedError):
            coordinator.grade_response(host_ctx, response.id, True, 10)
        with pytest.raises(ResponseLockedError):
            coordinator.submit_response(as_guest(guest.id), prompts[0].id, guest.id, {"answer": "again"})


# =============================================================================
# Leaderboard + analytics
# =============================================================================


class TestLeaderboard:

    def test_ties_broken_by_join_order(self, coordinator, host_ctx, event):
        guests = [coordinator.join_event(event.id, name) for name in ("Ana", "Ben", "Cy", "Di")]
        for guest, points in zip(guests, (5, 20, 20, 3)):
            coordinator.award_bonus_points(host_ctx, guest.id, points, "warm-up")

        ranked = coordinator.get_leaderboard(event.id)
        assert [g.display_name for g in ranked] == ["Ben", "Cy", "Ana", "Di"]
        assert [g.score for g in ranked] == [20, 20, 5, 3]

    def test_bonus_points_host_only(self, coordinator, as_guest, event):
        guest = coordinator.join_event(event.id, "Ana")
        with pytest.raises(NotAuthorizedError):
            coordinator.award_bonus_points(as_guest(guest.id), guest.id, 25, "self-award")

    def test_session_analytics(self, coordinator, host_ctx, as_guest, event, prompts):
        ana = coordinator.join_event(event.id, "Ana")
        ben = coordinator.join_event(event.id, "Ben")
        coordinator.start_session(host_ctx, event.id)

        ra = coordinator.submit_response(as_guest(ana.id), prompts[0].id, ana.id, {"answer": "Numbers 21"})
        rb = coordinator.submit_response(as_guest(ben.id), prompts[0].id, ben.id, {"answer": "Exodus 3"})
        coordinator.grade_response(host_ctx, ra.id, True, 10)
        coordinator.grade_response(host_ctx, rb.id, False, 0)

        analytics = coordinator.get_session_analytics(event.id)
        assert analytics.total_responses == 2
        assert [s.display_name for s in analytics.guest_stats] == ["Ana", "Ben"]
        assert [s.accuracy for s in analytics.guest_stats] == [100, 0]
        call_the_room = analytics.prompt_type_stats[0]
        assert call_the_room.prompt_type == "call_the_room"
        assert call_the_room.response_count == 2
        assert call_the_room.avg_score == 5


# =============================================================================
# Notifications
# =============================================================================


class TestNotifications:

    def test_start_and_advance_broadcast(self, coordinator, hub, host_ctx, event, prompts):
        coordinator.start_session(host_ctx, event.id)
        coordinator.advance_to_next_prompt(host_ctx, event.id)

        session_updates = _messages(hub, event.id, MessageType.SESSION_UPDATE)
        assert session_updates[-1].payload == {"status": "live", "is_paused": False}

        prompt_updates = _messages(hub, event.id, MessageType.PROMPT_UPDATE)
        assert [m.payload["prompt_id"] for m in prompt_updates] == [prompts[0].id, prompts[1].id]
        assert prompt_updates[-1].payload["previous_prompt_id"] == prompts[0].id

        rows = hub.history(row_channel("prompts", event.id))
        assert any(r.record["id"] == prompts[1].id and r.record["is_active"] for r in rows)

    def test_completion_broadcast(self, coordinator, hub, host_ctx, event, prompts):
        coordinator.start_session(host_ctx, event.id)
        for _ in prompts:
            coordinator.advance_to_next_prompt(host_ctx, event.id)

        last = _messages(hub, event.id, MessageType.PROMPT_UPDATE)[-1]
        assert last.payload["prompt_id"] is None
        assert _messages(hub, event.id, MessageType.SESSION_UPDATE)[-1].payload["status"] == "completed"

    def test_response_payload_not_broadcast(self, coordinator, hub, host_ctx, as_guest, event, prompts):
        guest = coordinator.join_event(event.id, "Ana")
        coordinator.start_session(host_ctx, event.id)
        coordinator.submit_response(as_guest(guest.id), prompts[0].id, guest.id, {"answer": "secret"})

        message = _messages(hub, event.id, MessageType.RESPONSE_SUBMITTED)[-1]
        assert message.payload["submission_count"] == 1
        assert "response_data" not in message.payload
        assert "secret" not in str(message.payload)

    def test_score_update_on_both_channels(self, coordinator, hub, host_ctx, as_guest, event, prompts):
        guest = coordinator.join_event(event.id, "Ana")
        coordinator.start_session(host_ctx, event.id)
        response = coordinator.submit_response(as_guest(guest.id), prompts[0].id, guest.id, {})
        coordinator.grade_response(host_ctx, response.id, True, 10)

        score = _messages(hub, event.id, MessageType.SCORE_UPDATE)[-1]
        assert score.payload["score"] == 10
        guest_rows = hub.history(row_channel("guests", event.id))
        assert guest_rows[-1].record["score"] == 10

    def test_host_extras(self, coordinator, hub, host_ctx, event):
        coordinator.send_announcement(host_ctx, event.id, "  Break in five minutes  ")
        coordinator.extend_time(host_ctx, event.id, 30)
        muted = coordinator.toggle_reactions(host_ctx, event.id, True)

        assert muted.reactions_muted
        assert _messages(hub, event.id, MessageType.ANNOUNCEMENT)[-1].payload["message"] == "Break in five minutes"
        assert _messages(hub, event.id, MessageType.TIME_EXTENSION)[-1].payload == {"seconds": 30}
        assert _messages(hub, event.id, MessageType.REACTIONS_TOGGLE)[-1].payload == {"muted": True}

        with pytest.raises(ValueError):
            coordinator.send_announcement(host_ctx, event.id, "   ")
        with pytest.raises(ValueError):
            coordinator.extend_time(host_ctx, event.id, 0)

    def test_failed_publish_keeps_write(self, store, host_ctx):
        class ExplodingSink:
            def send(self, *args, **kwargs):
                raise RuntimeError("channel down")

        publisher = StateChangePublisher(broadcast_sink=ExplodingSink(), row_change_sink=ExplodingSink())
        coordinator = LiveSessionCoordinator(store=store, publisher=publisher)
        event = coordinator.create_event(host_ctx, title="Offline")
        coordinator.add_prompt(host_ctx, event.id, PromptType.DRILL_DROP)

        started = coordinator.start_session(host_ctx, event.id)
        assert started.status == EventStatus.LIVE
        assert store.get_event(event.id).status == EventStatus.LIVE
