"""
Phototheology GuestHouse - Test Configuration

Pytest fixtures shared by the store, coordinator, grader and API tests.
"""
from typing import List

import pytest

from runtime.agents.session_coordinator import LiveSessionCoordinator
from runtime.models.session_models import (
    ActorRole,
    Event,
    PromptType,
    SessionContext,
    SessionPrompt,
)
from runtime.realtime.broadcast import BroadcastHub
from runtime.realtime.notifier import BroadcastSink, RowChangeSink, StateChangePublisher
from runtime.store.guesthouse_store import GuestHouseStore


HOST_ID = "host-1"


@pytest.fixture
def store() -> GuestHouseStore:
    """In-memory store; nothing touches the filesystem."""
    return GuestHouseStore()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def publisher(hub: BroadcastHub) -> StateChangePublisher:
    return StateChangePublisher(
        broadcast_sink=BroadcastSink(hub),
        row_change_sink=RowChangeSink(hub),
    )


@pytest.fixture
def coordinator(store: GuestHouseStore, publisher: StateChangePublisher) -> LiveSessionCoordinator:
    return LiveSessionCoordinator(store=store, publisher=publisher)


@pytest.fixture
def host_ctx() -> SessionContext:
    return SessionContext(actor_id=HOST_ID, role=ActorRole.HOST)


@pytest.fixture
def other_host_ctx() -> SessionContext:
    return SessionContext(actor_id="host-2", role=ActorRole.HOST)


@pytest.fixture
def event(coordinator: LiveSessionCoordinator, host_ctx: SessionContext) -> Event:
    """A scheduled event owned by HOST_ID, with no prompts yet."""
    return coordinator.create_event(host_ctx, title="Friday GuestHouse", max_guests=4)


@pytest.fixture
def prompts(
    coordinator: LiveSessionCoordinator,
    host_ctx: SessionContext,
    event: Event,
) -> List[SessionPrompt]:
    """Three prompts on `event`, in sequence order."""
    return [
        coordinator.add_prompt(
            host_ctx, event.id, PromptType.CALL_THE_ROOM,
            {"question": "Where is the bronze serpent lifted up?", "answer": "Numbers 21", "points": 10},
        ),
        coordinator.add_prompt(
            host_ctx, event.id, PromptType.VERSE_HUNT,
            {"clue": "God so loved the world", "answer": ["John 3:16", "Jn 3:16"], "points": 20},
        ),
        coordinator.add_prompt(
            host_ctx, event.id, PromptType.REVEAL_THE_GEM,
            {"verse": "Psalm 23:1"},
        ),
    ]


@pytest.fixture
def as_guest():
    """Build the capability of a checked-in guest from its id."""
    def _ctx(guest_id: str) -> SessionContext:
        return SessionContext(actor_id=guest_id, role=ActorRole.GUEST)
    return _ctx
