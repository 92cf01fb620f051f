"""Test helper utilities for auto-reply tests."""

from tests.helpers.factories import (
    NOW,
    add_message,
    enable_agent,
    make_conversation,
)
from tests.helpers.fake_backend import FakeGenerationBackend, RecordingPublisher

__all__ = [
    "NOW",
    "FakeGenerationBackend",
    "RecordingPublisher",
    "add_message",
    "enable_agent",
    "make_conversation",
]
