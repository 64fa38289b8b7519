"""Leaderboard ranking and post-session analytics.

Both are derived on demand from stored rows; nothing here is persisted.
"""

from datetime import datetime
from typing import Dict, List, Sequence

from pydantic import BaseModel

from ..models.session_models import Guest, Response, SessionPrompt


class GuestStats(BaseModel):
    guest_id: str
    display_name: str
    score: int
    rounds_played: int
    correct_answers: int
    accuracy: int                     # percent, 0 when no rounds were played


class PromptTypeStats(BaseModel):
    prompt_type: str
    response_count: int
    avg_score: int


class SessionAnalytics(BaseModel):
    event_id: str
    guest_stats: List[GuestStats]
    prompt_type_stats: List[PromptTypeStats]
    total_responses: int
    session_duration_minutes: int


def rank_guests(guests: Sequence[Guest]) -> List[Guest]:
    """Order guests for the leaderboard: score descending, earliest joiner first on ties."""
    return sorted(guests, key=lambda g: (-g.score, g.join_order))


def _accuracy(guest: Guest) -> int:
    if guest.rounds_played <= 0:
        return 0
    return round(guest.correct_answers / guest.rounds_played * 100)


def _duration_minutes(prompts: Sequence[SessionPrompt]) -> int:
    if not prompts:
        return 0
    created = sorted(datetime.fromisoformat(p.created_at) for p in prompts)
    return round((created[-1] - created[0]).total_seconds() / 60)


def compute_session_analytics(
    event_id: str,
    guests: Sequence[Guest],
    prompts: Sequence[SessionPrompt],
    responses: Sequence[Response],
) -> SessionAnalytics:
    """Summarize a session: per-guest accuracy and per-activity response stats."""
    guest_stats = [
        GuestStats(
            guest_id=g.id,
            display_name=g.display_name,
            score=g.score,
            rounds_played=g.rounds_played,
            correct_answers=g.correct_answers,
            accuracy=_accuracy(g),
        )
        for g in rank_guests(guests)
    ]

    prompt_types = {p.id: p.prompt_type.value for p in prompts}
    counts: Dict[str, int] = {}
    totals: Dict[str, int] = {}
    # Activity types appear in the order they were first run.
    for prompt in sorted(prompts, key=lambda p: p.created_at):
        counts.setdefault(prompt.prompt_type.value, 0)
        totals.setdefault(prompt.prompt_type.value, 0)
    for response in responses:
        prompt_type = prompt_types.get(response.prompt_id)
        if prompt_type is None:
            continue
        counts[prompt_type] += 1
        totals[prompt_type] += response.points_earned

    prompt_type_stats = [
        PromptTypeStats(
            prompt_type=prompt_type,
            response_count=count,
            avg_score=round(totals[prompt_type] / count) if count else 0,
        )
        for prompt_type, count in counts.items()
    ]

    return SessionAnalytics(
        event_id=event_id,
        guest_stats=guest_stats,
        prompt_type_stats=prompt_type_stats,
        total_responses=sum(counts.values()),
        session_duration_minutes=_duration_minutes(prompts),
    )
