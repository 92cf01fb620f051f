"""Content guardrails applied to generated replies.

Guardrails only remove text or reject a draft; they never add claims.
A draft that is too short after cleaning is rejected (empty string),
which the orchestrator records as EMPTY_OUTPUT.
"""

import re

MIN_REPLY_CHARS = 5

_URL_RE = re.compile(r"https?://\S+|www\.\S+", re.IGNORECASE)
_PHONE_RE = re.compile(r"(?:\+?\d{1,3}[\s.-]?)?(?:\(?\d{2,3}\)?[\s.-]?)?\d{4,5}[\s.-]?\d{4}")
_EMOJI_RE = re.compile(
    "["
    "\U0001F000-\U0001FAFF"
    "\U00002600-\U000027BF"
    "\U0001F1E6-\U0001F1FF"
    "\U00002B00-\U00002BFF"
    "\U0000FE0F\U0000200D"
    "]+"
)
_PLACEHOLDER_RE = re.compile(
    r"[\[{<]\s*(?:"
    r"(?:your|my|the)?\s*(?:agent(?:'s)?\s+|client\s+)?(?:full\s+)?name"
    r"(?:\s+of\s+the\s+agent)?"
    r"|(?:seu|sua)\s+nome"
    r"|nome(?:\s+do\s+(?:corretor|atendente))?"
    r")\s*[\]}>]",
    re.IGNORECASE,
)
_SCHEDULING_RE = re.compile(
    r"\b(?:schedul\w*|appointment\w*|visit\w*|book(?:ing)?\s+a|"
    r"tomorrow|today|tonight|this\s+(?:morning|afternoon|evening)|"
    r"saturday|sunday|get\s+back\s+to\s+you\s+(?:in|within))\b",
    re.IGNORECASE,
)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


def clamp_text(value: str, max_chars: int) -> str:
    """Cut text to max_chars, trimming trailing whitespace at the cut."""
    if len(value) <= max_chars:
        return value
    return value[:max_chars].rstrip()


def strip_urls(text: str) -> str:
    return _URL_RE.sub("", text)


def strip_phones(text: str) -> str:
    return _PHONE_RE.sub("", text)


def strip_emojis(text: str) -> str:
    return _EMOJI_RE.sub("", text)


def strip_placeholders(text: str) -> str:
    """Remove name stand-ins such as '[Your Name]', '[Seu Nome]' or '{agent name}'."""
    return _PLACEHOLDER_RE.sub("", text)


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" +([,.!?])", r"\1", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def drop_scheduling_sentences(text: str) -> str:
    """Remove sentences that book visits or promise response times.

    The agent is offline; the automated reply must not commit them to
    anything.
    """
    kept_lines = []
    for line in text.split("\n"):
        sentences = _SENTENCE_SPLIT_RE.split(line)
        kept = [s for s in sentences if not _SCHEDULING_RE.search(s)]
        kept_lines.append(" ".join(kept))
    return "\n".join(kept_lines)


def apply_reply_guardrails(draft: str | None, max_chars: int) -> str:
    """Clean a generated draft for sending.

    Args:
        draft: Raw generated text.
        max_chars: Maximum accepted length.

    Returns:
        The cleaned reply, or an empty string when nothing usable is left.
    """
    text = str(draft or "")
    text = strip_urls(text)
    text = strip_phones(text)
    text = strip_emojis(text)
    text = strip_placeholders(text)
    text = drop_scheduling_sentences(text)
    text = clamp_text(normalize_whitespace(text), max_chars)
    if len(text) < MIN_REPLY_CHARS:
        return ""
    return text
