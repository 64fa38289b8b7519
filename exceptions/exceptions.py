"""
Custom exceptions for the GuestHouse runtime and grading.

These exceptions are intentionally simple and descriptive.
They are used across:

  - runtime/store/
  - runtime/agents/
  - runtime/api/
  - core/grading/

Placing them at the project root (exceptions/) avoids circular imports
and keeps exception types consistent across modules. The HTTP layer maps
each family to a status code; nothing in here knows about HTTP.
"""


class GuestHouseError(Exception):
    """Base class for every domain error raised by the GuestHouse runtime."""


# ---------------------------------------------------------------------------
# Not found (backing-store lookups)
# ---------------------------------------------------------------------------


class NotFoundError(GuestHouseError):
    """
    Raised when a row looked up by id does not exist in the store.

    `kind` names the table-like collection ("event", "prompt", ...).
    """

    kind = "record"

    def __init__(self, record_id):
        self.record_id = record_id
        super().__init__(f"{self.kind.capitalize()} not found: {record_id}")


class EventNotFoundError(NotFoundError):
    kind = "event"


class PromptNotFoundError(NotFoundError):
    kind = "prompt"


class GuestNotFoundError(NotFoundError):
    kind = "guest"


class ResponseNotFoundError(NotFoundError):
    kind = "response"


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class NotAuthorizedError(GuestHouseError):
    """
    Raised when the caller's SessionContext does not carry the capability
    required for an operation (e.g., a guest trying to advance the session,
    or a host of another event).
    """

    def __init__(self, actor_id, action, details=None):
        self.actor_id = actor_id
        self.action = action
        self.details = details
        msg = f"Actor {actor_id!r} is not allowed to {action}"
        if details:
            msg += f": {details}"
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Session state machine
# ---------------------------------------------------------------------------


class InvalidTransitionError(GuestHouseError):
    """
    Raised when a state change is not allowed from the event's current status.

    Example:
        completed -> live   (completed is terminal)
    """

    def __init__(self, event_id, status, action):
        self.event_id = event_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} event {event_id} while it is {status}"
        )


class NoPromptsError(InvalidTransitionError):
    """Raised when a session is started without any configured prompt."""

    def __init__(self, event_id):
        super().__init__(event_id, "scheduled", "start (no prompts configured)")


class EventCompletedError(InvalidTransitionError):
    """
    Raised when joining an event that has already completed. Callers should
    send the guest to the results view instead.
    """

    def __init__(self, event_id):
        super().__init__(event_id, "completed", "join")


class EventFullError(GuestHouseError):
    """Raised when an event has reached its max_guests limit."""

    def __init__(self, event_id, max_guests):
        self.event_id = event_id
        self.max_guests = max_guests
        super().__init__(f"Event {event_id} is full ({max_guests} guests)")


# ---------------------------------------------------------------------------
# Responses + grading
# ---------------------------------------------------------------------------


class PromptNotActiveError(GuestHouseError):
    """Raised when a response is submitted to a prompt that is not active."""

    def __init__(self, prompt_id):
        self.prompt_id = prompt_id
        super().__init__(f"Prompt {prompt_id} is not accepting responses")


class ResponseLockedError(GuestHouseError):
    """Raised when a graded response would be overwritten or re-graded."""

    def __init__(self, response_id):
        self.response_id = response_id
        super().__init__(f"Response {response_id} has already been graded")


class GradingError(GuestHouseError):
    """
    Raised by a grading backend when it cannot produce a verdict.

    The original exception (if any) is kept on `cause`.
    """

    def __init__(self, response_id, details=None, cause=None):
        self.response_id = response_id
        self.details = details or "Grading backend failed."
        self.cause = cause
        msg = f"Grading error for response: {response_id}\nDetails: {self.details}"
        super().__init__(msg)
