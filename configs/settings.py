from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


class Settings:
    """
    Central configuration for the GuestHouse runtime.

    Values are loaded once from environment variables (with sensible defaults)
    and then exposed via typed properties.
    """

    def __init__(self) -> None:
        # OpenAI / model configuration (used by the automatic grader)
        self._openai_api_key = os.getenv("OPENAI_API_KEY")
        self._openai_base_url = os.getenv("OPENAI_BASE_URL") or None
        self._openai_model = os.getenv("PT_OPENAI_MODEL", "gpt-4.1-mini")

        # Grader model (defaults to OpenAI model) and backend selection
        self._grader_model = os.getenv("PT_GRADER_MODEL", self._openai_model)
        self._grader_backend = os.getenv("PT_GRADER_BACKEND", "answer_key").strip().lower()

        # Runtime data and log paths
        self._data_dir = Path(os.getenv("PT_DATA_DIR", "runtime/data"))
        self._log_dir = Path(
            os.getenv("PT_LOG_DIR", str(self._data_dir / "logs"))
        )
        self._log_level = os.getenv("PT_LOG_LEVEL", "INFO").upper()

        # GuestHouse defaults
        self._default_max_guests = int(os.getenv("PT_DEFAULT_MAX_GUESTS", "50"))
        self._channel_prefix = os.getenv("PT_CHANNEL_PREFIX", "live-session")

    # ------------------------------------------------------------------
    # OpenAI / model settings
    # ------------------------------------------------------------------

    @property
    def openai_api_key(self) -> str:
        if not self._openai_api_key:
            raise RuntimeError(
                "OPENAI_API_KEY is not set. Please export it in your environment "
                "or define it in a .env file."
            )
        return self._openai_api_key

    @property
    def openai_base_url(self) -> Optional[str]:
        return self._openai_base_url

    @property
    def openai_model(self) -> str:
        return self._openai_model

    @property
    def grader_model(self) -> str:
        return self._grader_model

    @property
    def grader_backend(self) -> str:
        return self._grader_backend

    # ------------------------------------------------------------------
    # Paths + logging
    # ------------------------------------------------------------------

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    @property
    def log_level(self) -> str:
        return self._log_level

    # ------------------------------------------------------------------
    # GuestHouse
    # ------------------------------------------------------------------

    @property
    def default_max_guests(self) -> int:
        return self._default_max_guests

    @property
    def channel_prefix(self) -> str:
        return self._channel_prefix


settings = Settings()
