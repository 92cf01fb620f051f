"""Text-generation backend boundary.

The reply generator depends only on the GenerationBackend protocol. The
production implementation calls Claude through the Anthropic SDK with a
hard per-call timeout and no SDK-level retries: a timed-out call is a
lost attempt, recorded as a generation failure.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from anthropic import Anthropic, APIError

from src.errors.domain import GenerationError
from src.services.auto_reply_config import get_api_key, get_max_tokens, get_model

if TYPE_CHECKING:
    from anthropic.types import Message

logger = logging.getLogger(__name__)


class GenerationBackend(Protocol):
    """Opaque text-completion service."""

    @property
    def model(self) -> str:
        """Model identifier recorded in the decision log."""
        ...

    def is_configured(self) -> bool:
        """Return True when credentials are present."""
        ...

    def complete(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        """Return generated text.

        Raises:
            GenerationError: On timeout, network failure or malformed output.
        """
        ...


def _extract_text(response: Message) -> str:
    parts = [
        getattr(block, "text", "")
        for block in (response.content or [])
        if getattr(block, "type", None) == "text"
    ]
    return "".join(parts).strip()


class AnthropicGenerationBackend:
    """GenerationBackend backed by the Anthropic Messages API.

    Args:
        client: Optional pre-built Anthropic client (tests inject a mock).
        model: Model override; defaults to AUTO_REPLY_MODEL.
    """

    def __init__(self, client: Anthropic | None = None, model: str | None = None) -> None:
        self._client = client
        self._model = model or get_model()

    @property
    def model(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return self._client is not None or get_api_key() is not None

    def _get_client(self) -> Anthropic:
        if self._client is None:
            self._client = Anthropic(api_key=get_api_key(), max_retries=0)
        return self._client

    def complete(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        try:
            response = self._get_client().with_options(timeout=timeout).messages.create(
                model=self._model,
                max_tokens=get_max_tokens(),
                temperature=0.4,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except APIError as e:
            logger.warning("Generation call failed (%s): %s", type(e).__name__, e)
            raise GenerationError(f"{type(e).__name__}: {e}") from e

        try:
            return _extract_text(response)
        except (AttributeError, TypeError) as e:
            raise GenerationError(f"Malformed generation response: {e}") from e
