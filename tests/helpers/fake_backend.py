"""In-memory stand-ins for the generation backend and realtime publisher."""

from dataclasses import dataclass, field
from typing import Any

DEFAULT_REPLY = (
    "Hi Ana, thanks for your message about the apartment. "
    "The agent is away right now and will follow up personally."
)


@dataclass
class GenerationCall:
    """Arguments of one complete() call."""

    system_prompt: str
    user_prompt: str
    timeout: float


class FakeGenerationBackend:
    """Configurable GenerationBackend for tests.

    Args:
        reply: Text returned by complete().
        error: Exception raised by complete() instead of returning.
        configured: Value returned by is_configured().
        model: Model identifier.
    """

    def __init__(
        self,
        reply: str = DEFAULT_REPLY,
        error: Exception | None = None,
        configured: bool = True,
        model: str = "fake-model-1",
    ) -> None:
        self.reply = reply
        self.error = error
        self.configured = configured
        self._model = model
        self.calls: list[GenerationCall] = []

    @property
    def model(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return self.configured

    def complete(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        self.calls.append(GenerationCall(system_prompt, user_prompt, timeout))
        if self.error is not None:
            raise self.error
        return self.reply


@dataclass
class RecordingPublisher:
    """NotificationPublisher that records events, or raises when told to."""

    fail: bool = False
    events: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("realtime provider unreachable")
        self.events.append((channel, event, payload))
