"""HTTP + WebSocket routes for GuestHouse live sessions.

Exposes endpoints like:

- POST /guesthouse/events                       -> create an event (host)
- POST /guesthouse/events/{id}/start|advance    -> drive the session (host)
- POST /guesthouse/events/{id}/join             -> check in a guest
- POST /guesthouse/prompts/{id}/responses       -> submit an answer (guest)
- POST /guesthouse/responses/{id}/grade         -> grade an answer (host)
- GET  /guesthouse/events/{id}/leaderboard      -> derived ranking
- WS   /guesthouse/events/{id}/live             -> broadcast + row changes

The caller's capability comes from the `X-Actor-Id` and `X-Actor-Role`
headers and is passed to the coordinator as a SessionContext; the
coordinator decides what that capability allows.

HTTP handlers are plain functions and run in FastAPI's threadpool; only
the WebSocket handler runs on the event loop, and publishers reach it
through `call_soon_threadsafe`.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, WebSocket, WebSocketDisconnect

from core.grading.auto_grader import AutoGrader
from exceptions.exceptions import (
    EventFullError,
    GradingError,
    GuestHouseError,
    InvalidTransitionError,
    NotAuthorizedError,
    NotFoundError,
    PromptNotActiveError,
    ResponseLockedError,
)
from ..agents.session_analytics import SessionAnalytics
from ..agents.session_coordinator import LiveSessionCoordinator
from ..models.api_models import (
    AddPromptRequest,
    AdvanceResponse,
    AnnouncementRequest,
    AutoGradeResponse,
    BonusPointsRequest,
    CreateEventRequest,
    GradeResponseRequest,
    JoinEventRequest,
    LeaderboardEntry,
    LeaderboardResponse,
    ReactionsToggleRequest,
    SessionStateResponse,
    SubmitResponseRequest,
    TimeExtensionRequest,
)
from ..models.session_models import (
    ActorRole,
    Event,
    EventStatus,
    Guest,
    Response,
    SessionContext,
    SessionPrompt,
)
from ..realtime.broadcast import BroadcastHub
from ..realtime.notifier import TABLES, broadcast_channel, row_channel


logger = logging.getLogger(__name__)

# Router for all guesthouse endpoints
router = APIRouter()


# Module-level references, to be initialized by the server.
_COORDINATOR: Optional[LiveSessionCoordinator] = None
_AUTO_GRADER: Optional[AutoGrader] = None
_HUB: Optional[BroadcastHub] = None
_CHANNEL_PREFIX: str = "live-session"


def init_routes(
    coordinator: LiveSessionCoordinator,
    auto_grader: AutoGrader,
    hub: BroadcastHub,
    channel_prefix: str = "live-session",
) -> None:
    """Initialize module-level references used by the route handlers."""
    global _COORDINATOR, _AUTO_GRADER, _HUB, _CHANNEL_PREFIX
    _COORDINATOR = coordinator
    _AUTO_GRADER = auto_grader
    _HUB = hub
    _CHANNEL_PREFIX = channel_prefix


def _require_coordinator() -> LiveSessionCoordinator:
    if _COORDINATOR is None:
        raise HTTPException(
            status_code=500,
            detail="LiveSessionCoordinator is not configured on the server.",
        )
    return _COORDINATOR


def _require_auto_grader() -> AutoGrader:
    if _AUTO_GRADER is None:
        raise HTTPException(
            status_code=500,
            detail="AutoGrader is not configured on the server.",
        )
    return _AUTO_GRADER


def _require_hub() -> BroadcastHub:
    if _HUB is None:
        raise HTTPException(
            status_code=500,
            detail="BroadcastHub is not configured on the server.",
        )
    return _HUB


def session_context(
    x_actor_id: str = Header(...),
    x_actor_role: ActorRole = Header(...),
) -> SessionContext:
    """Capability of the caller, read from the X-Actor-Id / X-Actor-Role headers."""
    return SessionContext(actor_id=x_actor_id, role=x_actor_role)


# Most specific first: EventCompletedError is an InvalidTransitionError.
_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (NotAuthorizedError, 403),
    (EventFullError, 409),
    (InvalidTransitionError, 409),
    (PromptNotActiveError, 409),
    (ResponseLockedError, 409),
    (GradingError, 502),
)


def _status_for(exc: GuestHouseError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


@contextmanager
def _translate_errors(action: str, **context):
    """Turn domain errors into HTTPExceptions, logging the request context."""
    try:
        yield
    except GuestHouseError as e:
        status = _status_for(e)
        logger.warning("[API] HTTP %s on %s %s reason=%r", status, action, context, str(e))
        raise HTTPException(status_code=status, detail=str(e)) from e
    except ValueError as e:
        logger.warning("[API] HTTP 400 on %s %s reason=%r", action, context, str(e))
        raise HTTPException(status_code=400, detail=str(e)) from e
    except HTTPException:
        raise
    except Exception:
        logger.exception("[API] Unexpected error on %s %s", action, context)
        raise


# --------------------------------------------------------
# Events + prompts
# --------------------------------------------------------

@router.post("/events", response_model=Event)
def create_event(
    request: CreateEventRequest,
    ctx: SessionContext = Depends(session_context),
) -> Event:
    coordinator = _require_coordinator()
    with _translate_errors("create_event", actor_id=ctx.actor_id):
        return coordinator.create_event(
            ctx,
            title=request.title,
            description=request.description,
            scheduled_at=request.scheduled_at,
            max_guests=request.max_guests,
        )


@router.get("/events", response_model=List[Event])
def list_events(
    host_id: Optional[str] = None,
    status: Optional[List[EventStatus]] = Query(default=None),
) -> List[Event]:
    coordinator = _require_coordinator()
    return coordinator.list_events(host_id=host_id, statuses=status)


@router.get("/events/{event_id}", response_model=SessionStateResponse)
def get_session_state(event_id: str) -> SessionStateResponse:
    coordinator = _require_coordinator()
    with _translate_errors("get_session_state", event_id=event_id):
        prompts = coordinator.get_prompts(event_id)
        return SessionStateResponse(
            event=coordinator.get_event(event_id),
            active_prompt=next((p for p in prompts if p.is_active), None),
            prompts=prompts,
        )


@router.post("/events/{event_id}/prompts", response_model=SessionPrompt)
def add_prompt(
    event_id: str,
    request: AddPromptRequest,
    ctx: SessionContext = Depends(session_context),
) -> SessionPrompt:
    coordinator = _require_coordinator()
    with _translate_errors("add_prompt", event_id=event_id, actor_id=ctx.actor_id):
        return coordinator.add_prompt(
            ctx, event_id, request.prompt_type, request.prompt_data
        )


@router.post("/events/{event_id}/launch", response_model=SessionPrompt)
def launch_prompt(
    event_id: str,
    request: AddPromptRequest,
    ctx: SessionContext = Depends(session_context),
) -> SessionPrompt:
    coordinator = _require_coordinator()
    with _translate_errors("launch_prompt", event_id=event_id, actor_id=ctx.actor_id):
        return coordinator.launch_prompt(
            ctx, event_id, request.prompt_type, request.prompt_data
        )


# --------------------------------------------------------
# Session state machine
# --------------------------------------------------------

@router.post("/events/{event_id}/start", response_model=Event)
def start_session(
    event_id: str,
    ctx: SessionContext = Depends(session_context),
) -> Event:
    coordinator = _require_coordinator()
    with _translate_errors("start_session", event_id=event_id, actor_id=ctx.actor_id):
        return coordinator.start_session(ctx, event_id)


@router.post("/events/{event_id}/advance", response_model=AdvanceResponse)
def advance_session(
    event_id: str,
    ctx: SessionContext = Depends(session_context),
) -> AdvanceResponse:
    coordinator = _require_coordinator()
    with _translate_errors("advance_session", event_id=event_id, actor_id=ctx.actor_id):
        prompt = coordinator.advance_to_next_prompt(ctx, event_id)
        return AdvanceResponse(event=coordinator.get_event(event_id), active_prompt=prompt)


@router.post("/events/{event_id}/pause", response_model=Event)
def pause_session(
    event_id: str,
    ctx: SessionContext = Depends(session_context),
) -> Event:
    coordinator = _require_coordinator()
    with _translate_errors("pause_session", event_id=event_id, actor_id=ctx.actor_id):
        return coordinator.pause_session(ctx, event_id)


@router.post("/events/{event_id}/resume", response_model=Event)
def resume_session(
    event_id: str,
    ctx: SessionContext = Depends(session_context),
) -> Event:
    coordinator = _require_coordinator()
    with _translate_errors("resume_session", event_id=event_id, actor_id=ctx.actor_id):
        return coordinator.resume_session(ctx, event_id)


@router.post("/events/{event_id}/end", response_model=Event)
def end_session(
    event_id: str,
    ctx: SessionContext = Depends(session_context),
) -> Event:
    coordinator = _require_coordinator()
    with _translate_errors("end_session", event_id=event_id, actor_id=ctx.actor_id):
        return coordinator.end_session(ctx, event_id)


# --------------------------------------------------------
# Guests, responses, scoring
# --------------------------------------------------------

@router.post("/events/{event_id}/join", response_model=Guest)
def join_event(event_id: str, request: JoinEventRequest) -> Guest:
    """Check a guest in. A completed event answers 409; show its results instead."""
    coordinator = _require_coordinator()
    with _translate_errors("join_event", event_id=event_id, display_name=request.display_name):
        return coordinator.join_event(event_id, request.display_name, user_id=request.user_id)


@router.post("/prompts/{prompt_id}/responses", response_model=Response)
def submit_response(
    prompt_id: str,
    request: SubmitResponseRequest,
    ctx: SessionContext = Depends(session_context),
) -> Response:
    coordinator = _require_coordinator()
    with _translate_errors("submit_response", prompt_id=prompt_id, guest_id=request.guest_id):
        return coordinator.submit_response(
            ctx, prompt_id, request.guest_id, request.response_data
        )


@router.post("/responses/{response_id}/grade", response_model=Response)
def grade_response(
    response_id: str,
    request: GradeResponseRequest,
    ctx: SessionContext = Depends(session_context),
) -> Response:
    coordinator = _require_coordinator()
    with _translate_errors("grade_response", response_id=response_id, actor_id=ctx.actor_id):
        return coordinator.grade_response(
            ctx, response_id, request.is_correct, request.points
        )


@router.post("/prompts/{prompt_id}/auto_grade", response_model=AutoGradeResponse)
def auto_grade_prompt(
    prompt_id: str,
    ctx: SessionContext = Depends(session_context),
) -> AutoGradeResponse:
    auto_grader = _require_auto_grader()
    with _translate_errors("auto_grade_prompt", prompt_id=prompt_id, actor_id=ctx.actor_id):
        summary = auto_grader.grade_prompt(ctx, prompt_id)
        return AutoGradeResponse(
            prompt_id=summary.prompt_id,
            graded=summary.graded,
            failed=summary.failed,
            feedback=summary.feedback,
        )


@router.post("/events/{event_id}/bonus", response_model=Guest)
def award_bonus_points(
    event_id: str,
    request: BonusPointsRequest,
    ctx: SessionContext = Depends(session_context),
) -> Guest:
    coordinator = _require_coordinator()
    with _translate_errors("award_bonus_points", event_id=event_id, guest_id=request.guest_id):
        guest = coordinator.store.get_guest(request.guest_id)
        if guest.event_id != event_id:
            raise HTTPException(status_code=404, detail="Guest not found in this event")
        return coordinator.award_bonus_points(
            ctx, request.guest_id, request.points, request.reason
        )


@router.get("/events/{event_id}/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(event_id: str) -> LeaderboardResponse:
    coordinator = _require_coordinator()
    with _translate_errors("get_leaderboard", event_id=event_id):
        ranked = coordinator.get_leaderboard(event_id)
    return LeaderboardResponse(
        event_id=event_id,
        entries=[
            LeaderboardEntry(
                rank=idx,
                guest_id=g.id,
                display_name=g.display_name,
                score=g.score,
                correct_answers=g.correct_answers,
                rounds_played=g.rounds_played,
            )
            for idx, g in enumerate(ranked, start=1)
        ],
    )


@router.get("/events/{event_id}/analytics", response_model=SessionAnalytics)
def get_session_analytics(event_id: str) -> SessionAnalytics:
    coordinator = _require_coordinator()
    with _translate_errors("get_session_analytics", event_id=event_id):
        return coordinator.get_session_analytics(event_id)


# --------------------------------------------------------
# Host broadcast extras
# --------------------------------------------------------

@router.post("/events/{event_id}/announcements", status_code=204)
def send_announcement(
    event_id: str,
    request: AnnouncementRequest,
    ctx: SessionContext = Depends(session_context),
) -> None:
    coordinator = _require_coordinator()
    with _translate_errors("send_announcement", event_id=event_id, actor_id=ctx.actor_id):
        coordinator.send_announcement(ctx, event_id, request.message)


@router.post("/events/{event_id}/time_extension", status_code=204)
def extend_time(
    event_id: str,
    request: TimeExtensionRequest,
    ctx: SessionContext = Depends(session_context),
) -> None:
    coordinator = _require_coordinator()
    with _translate_errors("extend_time", event_id=event_id, actor_id=ctx.actor_id):
        coordinator.extend_time(ctx, event_id, request.seconds)


@router.post("/events/{event_id}/reactions", response_model=Event)
def toggle_reactions(
    event_id: str,
    request: ReactionsToggleRequest,
    ctx: SessionContext = Depends(session_context),
) -> Event:
    coordinator = _require_coordinator()
    with _translate_errors("toggle_reactions", event_id=event_id, actor_id=ctx.actor_id):
        return coordinator.toggle_reactions(ctx, event_id, request.muted)


# --------------------------------------------------------
# Realtime
# --------------------------------------------------------

@router.get("/events/{event_id}/messages")
def recent_messages(event_id: str, limit: int = Query(default=50, ge=1, le=100)):
    """Recent broadcast messages, for a client catching up after reconnecting."""
    hub = _require_hub()
    channel = broadcast_channel(event_id, _CHANNEL_PREFIX)
    return [m.model_dump(mode="json") for m in hub.history(channel, limit=limit)]


@router.websocket("/events/{event_id}/live")
async def live_updates(websocket: WebSocket, event_id: str) -> None:
    """Stream the event's broadcast messages and row changes to one client.

    The first frame is a snapshot of the current session state.
    """
    coordinator = _require_coordinator()
    hub = _require_hub()
    try:
        event = coordinator.get_event(event_id)
    except NotFoundError:
        await websocket.close(code=4404)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def forward(message) -> None:
        # Publishers may run on worker threads.
        loop.call_soon_threadsafe(queue.put_nowait, message)

    channels = [broadcast_channel(event_id, _CHANNEL_PREFIX)]
    channels += [row_channel(table, event_id) for table in TABLES]
    subscriptions = [(channel, hub.subscribe(channel, forward)) for channel in channels]

    async def pump() -> None:
        while True:
            message = await queue.get()
            await websocket.send_json(message.model_dump(mode="json"))

    async def drain() -> None:
        # Inbound frames are ignored; receiving is how a disconnect shows up.
        while True:
            await websocket.receive_text()

    tasks: List[asyncio.Task] = []
    try:
        active = coordinator.get_active_prompt(event_id)
        await websocket.send_json({
            "type": "snapshot",
            "event": event.model_dump(mode="json"),
            "active_prompt": active.model_dump(mode="json") if active else None,
        })
        tasks = [asyncio.create_task(pump()), asyncio.create_task(drain())]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        errors = [task.exception() for task in done]
        failures = [e for e in errors if e is not None and not isinstance(e, WebSocketDisconnect)]
        if failures:
            logger.warning("[API] live stream for event %s failed: %s", event_id, failures[0])
            try:
                await websocket.close(code=1011)
            except (RuntimeError, OSError) as exc:
                logger.debug("[API] could not close live socket for event %s: %s", event_id, exc)
            return
        logger.debug("[API] live client left event %s", event_id)
    except WebSocketDisconnect:
        logger.debug("[API] live client left event %s", event_id)
    finally:
        for task in tasks:
            task.cancel()
        for channel, subscription_id in subscriptions:
            hub.unsubscribe(channel, subscription_id)
