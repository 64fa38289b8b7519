"""
HTTP request/response models for the GuestHouse runtime API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .session_models import Event, PromptType, Response, SessionPrompt


# ---------------------------------------------------------------------------
# Events + prompts
# ---------------------------------------------------------------------------


class CreateEventRequest(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    max_guests: Optional[int] = Field(default=None, ge=1)


class AddPromptRequest(BaseModel):
    prompt_type: PromptType
    prompt_data: Dict[str, Any] = Field(default_factory=dict)


class SessionStateResponse(BaseModel):
    """
    Current view of one event:

    - event: the event row (status, paused flag, ...)
    - active_prompt: the active prompt, or None while waiting
    - prompts: every prompt in sequence order
    """
    event: Event
    active_prompt: Optional[SessionPrompt] = None
    prompts: List[SessionPrompt] = Field(default_factory=list)


class AdvanceResponse(BaseModel):
    event: Event
    active_prompt: Optional[SessionPrompt] = None


# ---------------------------------------------------------------------------
# Guests, responses, scoring
# ---------------------------------------------------------------------------


class JoinEventRequest(BaseModel):
    display_name: str = Field(min_length=1, max_length=60)
    user_id: Optional[str] = None


class SubmitResponseRequest(BaseModel):
    guest_id: str
    response_data: Dict[str, Any] = Field(default_factory=dict)


class GradeResponseRequest(BaseModel):
    is_correct: bool
    points: int = Field(ge=0)


class BonusPointsRequest(BaseModel):
    guest_id: str
    points: int = Field(default=25, gt=0)
    reason: str = "Great insight!"


class AutoGradeResponse(BaseModel):
    prompt_id: str
    graded: List[Response]
    failed: Dict[str, str]
    feedback: Dict[str, str]


class LeaderboardEntry(BaseModel):
    rank: int
    guest_id: str
    display_name: str
    score: int
    correct_answers: int
    rounds_played: int


class LeaderboardResponse(BaseModel):
    event_id: str
    entries: List[LeaderboardEntry]


# ---------------------------------------------------------------------------
# Host broadcast extras
# ---------------------------------------------------------------------------


class AnnouncementRequest(BaseModel):
    message: str = Field(min_length=1)


class TimeExtensionRequest(BaseModel):
    seconds: int = Field(default=30, gt=0)


class ReactionsToggleRequest(BaseModel):
    muted: bool


# ---------------------------------------------------------------------------
# Scripture
# ---------------------------------------------------------------------------


class ExtractReferencesRequest(BaseModel):
    text: str
    strict: bool = False


class ExtractReferencesResponse(BaseModel):
    references: List[str]


class StripMarkupRequest(BaseModel):
    text: str


class StripMarkupResponse(BaseModel):
    text: str
