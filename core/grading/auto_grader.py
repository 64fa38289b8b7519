# grading/auto_grader.py
"""
Automatic grading of GuestHouse responses.

An AutoGrader takes every ungraded response of one prompt, asks a
GradingBackend for a verdict, and records each verdict through
LiveSessionCoordinator.grade_response, so automatic grades go through the
same atomic scoring and broadcasts as a host's manual grade.

Backends:
- AnswerKeyGradingBackend: compares the guest's "answer" against the
  prompt's answer key (prompt_data["answer"], a string or list of strings).
- OpenAIGradingBackend: asks the LLM for a structured verdict, for
  open-ended activities without a fixed answer.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel

from core.api import openai_client
from core.grading.prompts import PROMPT_GRADE_RESPONSE
from configs.settings import settings
from exceptions.exceptions import GradingError, ResponseLockedError
from runtime.models.session_models import Response, SessionContext, SessionPrompt


logger = logging.getLogger(__name__)

DEFAULT_POINTS = 10


# ---------------------------------------------------------------------------
# Result + backend interface
# ---------------------------------------------------------------------------


@dataclass
class GradingResult:
    """Verdict for a single response."""

    is_correct: bool
    points: int
    feedback: Optional[str] = None


@dataclass
class GradingSummary:
    """Outcome of grading one prompt's pending responses."""

    prompt_id: str
    graded: List[Response] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)   # response_id -> reason
    feedback: Dict[str, str] = field(default_factory=dict)  # response_id -> feedback


class GradingBackend(Protocol):
    """
    Abstract backend interface for grading one response.

    Implementations raise GradingError when they cannot reach a verdict;
    they never write anything themselves.
    """

    def grade(self, prompt: SessionPrompt, response: Response) -> GradingResult:
        ...


def _points_for(prompt: SessionPrompt) -> int:
    try:
        return max(0, int(prompt.prompt_data.get("points", DEFAULT_POINTS)))
    except (TypeError, ValueError):
        return DEFAULT_POINTS


# ---------------------------------------------------------------------------
# Answer-key backend
# ---------------------------------------------------------------------------


_NON_WORD = re.compile(r"[^\w\s:]")
_SPACES = re.compile(r"\s+")


def normalize_answer(value) -> str:
    """Lowercase, drop punctuation (except ':' in references) and collapse spaces."""
    text = _NON_WORD.sub(" ", str(value).lower())
    return _SPACES.sub(" ", text).strip()


class AnswerKeyGradingBackend:
    """Grades by exact (normalized) comparison with the prompt's answer key."""

    def grade(self, prompt: SessionPrompt, response: Response) -> GradingResult:
        key = prompt.prompt_data.get("answer")
        if key is None:
            raise GradingError(response.id, f"prompt {prompt.id} has no answer key")

        accepted = key if isinstance(key, list) else [key]
        answer = response.response_data.get("answer")
        if answer is None:
            return GradingResult(is_correct=False, points=0, feedback="No answer given.")

        is_correct = normalize_answer(answer) in {normalize_answer(a) for a in accepted}
        return GradingResult(
            is_correct=is_correct,
            points=_points_for(prompt) if is_correct else 0,
        )


# ---------------------------------------------------------------------------
# OpenAI-based backend
# ---------------------------------------------------------------------------


class GradingResultModel(BaseModel):
    """Structured verdict returned by GPT."""

    is_correct: bool
    points: int
    feedback: Optional[str] = None


class OpenAIGradingBackend:
    """GradingBackend using the project-local openai_client.

    This backend only knows how to formulate the grading prompt and read
    the structured answer; it knows nothing about sessions or storage.
    Points are clamped to [0, prompt points].
    """

    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model or settings.grader_model

    def grade(self, prompt: SessionPrompt, response: Response) -> GradingResult:
        max_points = _points_for(prompt)
        full_prompt = PROMPT_GRADE_RESPONSE.format(
            prompt_type=prompt.prompt_type.value,
            prompt_data=json.dumps(prompt.prompt_data, ensure_ascii=False, indent=2),
            response_data=json.dumps(response.response_data, ensure_ascii=False, indent=2),
            max_points=max_points,
        )

        try:
            result = openai_client.send_request_to_gpt(
                full_prompt,
                structured_output=GradingResultModel,
                model=self.model,
            )
        except Exception as exc:
            raise GradingError(response.id, f"OpenAI backend error: {exc}", cause=exc) from exc

        points = min(max(result.points, 0), max_points)
        return GradingResult(
            is_correct=result.is_correct,
            points=points,
            feedback=result.feedback,
        )


def build_backend(name: Optional[str] = None) -> GradingBackend:
    """Return the backend named by `name` (default: PT_GRADER_BACKEND)."""
    name = (name or settings.grader_backend).lower()
    if name == "openai":
        return OpenAIGradingBackend()
    if name == "answer_key":
        return AnswerKeyGradingBackend()
    raise ValueError(f"Unknown grader backend: {name!r}")


# ---------------------------------------------------------------------------
# AutoGrader
# ---------------------------------------------------------------------------


class AutoGrader:
    """
    Grades all pending responses of a prompt on behalf of the host.

    The host capability is checked once up front; each verdict is then
    recorded with coordinator.grade_response(ctx, ...), which checks again.
    """

    def __init__(self, coordinator, backend: GradingBackend) -> None:
        self.coordinator = coordinator
        self.backend = backend

    def grade_prompt(self, ctx: SessionContext, prompt_id: str) -> GradingSummary:
        prompt = self.coordinator.store.get_prompt(prompt_id)
        self.coordinator.require_host(ctx, prompt.event_id, "grade responses")

        summary = GradingSummary(prompt_id=prompt_id)
        pending = [
            r for r in self.coordinator.store.list_responses(prompt_id=prompt_id)
            if not r.is_graded
        ]

        for response in pending:
            try:
                result = self.backend.grade(prompt, response)
            except GradingError as exc:
                logger.warning("[GRADER] Could not grade response %s: %s", response.id, exc.details)
                summary.failed[response.id] = exc.details
                continue

            try:
                graded = self.coordinator.grade_response(
                    ctx, response.id, result.is_correct, result.points
                )
            except ResponseLockedError as exc:
                # Graded by hand while this run was in progress.
                logger.info("[GRADER] Response %s already graded, skipping", response.id)
                summary.failed[response.id] = str(exc)
                continue
            summary.graded.append(graded)
            if result.feedback:
                summary.feedback[response.id] = result.feedback

        logger.info(
            "[GRADER] Prompt %s: %d graded, %d failed",
            prompt_id, len(summary.graded), len(summary.failed),
        )
        return summary
