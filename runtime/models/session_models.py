"""
Live-session models for the GuestHouse runtime.

These describe:
- Event (a scheduled live gathering) + EventStatus
- SessionPrompt (one interactive activity) + PromptType
- Guest (a participant) and Response (a guest's submission)
- SessionContext: the caller's capability (host or guest)
- BroadcastMessage / RowChange: what gets published to participants
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid4())


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"


class PromptType(str, Enum):
    CALL_THE_ROOM = "call_the_room"
    VERSE_FRACTURE = "verse_fracture"
    BUILD_THE_STUDY = "build_the_study"
    PALACE_PULSE = "palace_pulse"
    SILENT_COEXEGESIS = "silent_coexegesis"
    DRILL_DROP = "drill_drop"
    REVEAL_THE_GEM = "reveal_the_gem"
    VERSE_HUNT = "verse_hunt"


class ActorRole(str, Enum):
    HOST = "host"
    GUEST = "guest"


class SessionContext(BaseModel):
    """Who is calling. Passed explicitly on every mutating operation."""
    actor_id: str
    role: ActorRole

    @property
    def is_host(self) -> bool:
        return self.role == ActorRole.HOST


class Event(BaseModel):
    id: str = Field(default_factory=new_id)
    host_id: str
    title: str
    description: Optional[str] = None
    scheduled_at: str = Field(default_factory=utc_now)
    max_guests: int = 50
    status: EventStatus = EventStatus.SCHEDULED
    is_paused: bool = False
    reactions_muted: bool = False
    created_at: str = Field(default_factory=utc_now)


class SessionPrompt(BaseModel):
    id: str = Field(default_factory=new_id)
    event_id: str
    prompt_type: PromptType
    sequence_order: int
    prompt_data: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = False
    started_at: Optional[str] = None
    ended_at: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)


class Guest(BaseModel):
    id: str = Field(default_factory=new_id)
    event_id: str
    display_name: str
    user_id: Optional[str] = None     # None for anonymous guests
    is_checked_in: bool = True
    score: int = 0
    rounds_played: int = 0
    correct_answers: int = 0
    joined_at: str = Field(default_factory=utc_now)
    join_order: int = 0               # assigned by the store; leaderboard tie-break


class Response(BaseModel):
    id: str = Field(default_factory=new_id)
    prompt_id: str
    guest_id: str
    event_id: str
    response_data: Dict[str, Any] = Field(default_factory=dict)
    is_correct: Optional[bool] = None
    points_earned: int = 0
    graded_at: Optional[str] = None
    submitted_at: str = Field(default_factory=utc_now)

    @property
    def is_graded(self) -> bool:
        return self.graded_at is not None


class EventSnapshot(BaseModel):
    """Everything stored for one event; the unit of file persistence."""
    event: Event
    prompts: List[SessionPrompt] = Field(default_factory=list)
    guests: List[Guest] = Field(default_factory=list)
    responses: List[Response] = Field(default_factory=list)
    next_join_order: int = 1


class MessageType(str, Enum):
    SESSION_UPDATE = "session_update"
    PROMPT_UPDATE = "prompt_update"
    RESPONSE_SUBMITTED = "response_submitted"
    SCORE_UPDATE = "score_update"
    BONUS_POINTS = "bonus_points"
    ANNOUNCEMENT = "announcement"
    TIME_EXTENSION = "time_extension"
    REACTIONS_TOGGLE = "reactions_toggle"


class BroadcastMessage(BaseModel):
    channel: str
    event: MessageType
    payload: Dict[str, Any] = Field(default_factory=dict)
    sent_at: str = Field(default_factory=utc_now)


class RowChange(BaseModel):
    """Row-level change notification (the durable fallback channel)."""
    channel: str
    table: str                        # "events", "prompts" or "guests"
    change: str                       # "INSERT" or "UPDATE"
    record: Dict[str, Any]
    sent_at: str = Field(default_factory=utc_now)
