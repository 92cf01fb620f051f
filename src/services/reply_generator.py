"""Reply generator for offline auto-replies.

Builds a bounded prompt from the conversation subject and recent history,
calls the generation backend with a hard timeout, and runs the result
through the content guardrails.

Example:
    generator = ReplyGenerator(db, AnthropicGenerationBackend())
    outcome = generator.generate(conversation_id)
    if outcome.ok:
        store.append_automated_message(conversation_id, outcome.text)
"""

import json
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from src.db.models import ChatMessage, Conversation, MessageSource
from src.errors.domain import GenerationError
from src.services.auto_reply_config import (
    PROMPT_VERSION,
    get_generation_timeout,
    get_history_limit,
    get_max_reply_chars,
)
from src.services.auto_reply_types import FailureReason
from src.services.conversation_store import ConversationStore, subject_facts
from src.services.generation_backend import GenerationBackend
from src.services.reply_guardrails import apply_reply_guardrails

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You write short replies on behalf of a support agent who is \
currently offline. The client has just sent a message and no human is \
available to answer right now.

Rules:
- Use only the facts supplied in the conversation context. Never invent \
prices, availability, conditions or details.
- Do not include links, phone numbers or e-mail addresses.
- Do not schedule visits, meetings or calls, and do not suggest dates or times.
- Do not promise when the agent will respond.
- Acknowledge the client's message, answer only what the facts cover, and say \
the agent will follow up.
- Keep the reply to two or three short sentences, in the client's language.
- Do not sign the message and do not use placeholders such as [your name]."""


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of one generation attempt.

    Attributes:
        text: Cleaned reply text; empty when the attempt failed.
        model: Backend model identifier.
        prompt_version: Version tag of the prompt template.
        failure: Failure reason when no usable reply was produced.
        detail: Backend error detail for GENERATION_ERROR failures.
    """

    text: str
    model: str
    prompt_version: str = PROMPT_VERSION
    failure: FailureReason | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def _speaker(message: ChatMessage) -> str:
    if message.from_client:
        return "Client"
    if message.source == MessageSource.AUTOMATED.value:
        return "Agent (automated)"
    return "Agent"


def format_history(messages: list[ChatMessage]) -> str:
    """Render messages oldest first, one '<Speaker>: <text>' line each."""
    lines = [
        f"{_speaker(m)}: {' '.join(m.content.split())}"
        for m in messages
        if m.content and m.content.strip()
    ]
    return "\n".join(lines) if lines else "(no history)"


def build_user_prompt(conversation: Conversation, history: list[ChatMessage]) -> str:
    """Build the user prompt carrying the subject facts and history."""
    facts = subject_facts(conversation)
    facts_text = (
        json.dumps(facts, ensure_ascii=False, indent=2, sort_keys=True)
        if facts
        else "(none)"
    )
    return (
        f"Client name: {conversation.contact_name or '(unknown)'}\n"
        f"Subject: {conversation.subject_title or '(not specified)'}\n"
        f"Subject facts:\n{facts_text}\n\n"
        f"Recent conversation (oldest first):\n{format_history(history)}\n\n"
        "Write the reply to the client's last message."
    )


class ReplyGenerator:
    """Drafts an automated reply for a conversation.

    Args:
        db: SQLAlchemy session.
        backend: Text generation backend.
    """

    def __init__(self, db: Session, backend: GenerationBackend) -> None:
        self._store = ConversationStore(db)
        self._backend = backend

    def generate(self, conversation_id: str) -> GenerationOutcome:
        """Generate and clean a reply for the conversation's latest message.

        Args:
            conversation_id: Conversation to reply in.

        Returns:
            GenerationOutcome with the cleaned text, or a failure reason of
            GENERATION_ERROR or EMPTY_OUTPUT.
        """
        model = self._backend.model
        conversation = self._store.get_conversation(conversation_id)
        if conversation is None:
            return GenerationOutcome(
                text="", model=model,
                failure=FailureReason.GENERATION_ERROR,
                detail=f"Conversation not found: {conversation_id}",
            )

        history = self._store.recent_messages(conversation_id, get_history_limit())
        user_prompt = build_user_prompt(conversation, history)

        try:
            draft = self._backend.complete(
                SYSTEM_PROMPT, user_prompt, get_generation_timeout()
            )
        except GenerationError as e:
            logger.warning(
                "Generation failed for conversation %s: %s", conversation_id, e.detail
            )
            return GenerationOutcome(
                text="", model=model,
                failure=FailureReason.GENERATION_ERROR,
                detail=e.detail,
            )

        text = apply_reply_guardrails(draft, get_max_reply_chars())
        if not text:
            logger.info(
                "Generated reply for conversation %s was empty after guardrails",
                conversation_id,
            )
            return GenerationOutcome(
                text="", model=model, failure=FailureReason.EMPTY_OUTPUT
            )

        return GenerationOutcome(text=text, model=model)
