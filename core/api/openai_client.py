"""
core.api.openai_client

Thin wrapper around the OpenAI Chat Completions API for the GuestHouse runtime.

Used by:
  - core/grading/auto_grader.py (OpenAIGradingBackend)
"""

from __future__ import annotations

import json
from typing import Any, Optional, Type, Union

from pydantic import BaseModel
from openai import OpenAI

from configs.settings import settings


# -------------------------------------------------------------------
# Client + config
# -------------------------------------------------------------------

_client: Optional[OpenAI] = None

# Default model (customizable via PT_OPENAI_MODEL)
DEFAULT_MODEL = settings.openai_model


def get_client() -> OpenAI:
    """
    Return the shared client, creating it on first use.

    The API key is only required once a request is actually sent, so the
    runtime can start (and be tested) without OPENAI_API_KEY.
    """
    global _client
    if _client is None:
        _client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )
    return _client


# -------------------------------------------------------------------
# Internal helpers
# -------------------------------------------------------------------


def _extract_json_from_text(text: str) -> str:
    """
    Normalize model text output into a raw JSON string.

    Handles Markdown ```json fenced blocks and extra prose around the JSON
    object by extracting the first {...} block from the text.
    """
    text = text.strip()

    if text.startswith("```"):
        lines = text.splitlines()
        if lines and lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].startswith("```"):
            lines = lines[:-1]
        text = "\n".join(lines).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1].strip()

    return text


# -------------------------------------------------------------------
# Public function
# -------------------------------------------------------------------

def send_request_to_gpt(
    prompt: str,
    *,
    structured_output: Union[bool, Type[BaseModel]] = False,
    model: Optional[str] = None,
    system_prompt: Optional[str] = None,
) -> Any:
    """
    Send a prompt to the OpenAI API and return the response.

    Parameters
    ----------
    prompt : str
        The user prompt (full instruction text).
    structured_output : bool | Type[BaseModel]
        - False (default): return plain text string.
        - True: expect a JSON object and return raw text (caller parses).
        - Pydantic BaseModel subclass: parse the model's JSON into an
          instance of that model.
    model : str, optional
        Override the default model name.
    system_prompt : str, optional
        Extra system message sent before the user prompt.

    Raises
    ------
    OpenAIError
        If the API call fails.
    RuntimeError
        If the response is missing or cannot be parsed.
    """
    model_name = model or DEFAULT_MODEL

    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    completion = get_client().chat.completions.create(
        model=model_name,
        messages=messages,
        temperature=0.0,
    )

    if not completion.choices:
        raise RuntimeError("Empty response from OpenAI API.")

    text = completion.choices[0].message.content or ""

    if isinstance(structured_output, type) and issubclass(structured_output, BaseModel):
        cleaned_text = _extract_json_from_text(text)
        try:
            data = json.loads(cleaned_text)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Failed to parse JSON from model output: {e}\nRaw text: {text}")

        return structured_output(**data)

    # structured_output is True or False: the caller gets the raw text
    return text
