"""Tests for reply content guardrails."""

import pytest

from src.services.reply_guardrails import (
    apply_reply_guardrails,
    clamp_text,
    drop_scheduling_sentences,
    strip_emojis,
    strip_phones,
    strip_placeholders,
    strip_urls,
)


def test_strips_urls():
    text = strip_urls("See https://example.com/listing?id=4 or www.example.org for photos.")
    assert "http" not in text
    assert "www." not in text


def test_strips_phone_numbers():
    text = strip_phones("Call me at +55 11 98765-4321 or (11) 3456-7890 today")
    assert "98765" not in text
    assert "3456" not in text


def test_keeps_short_numbers():
    assert strip_phones("The apartment has 2 bedrooms and 85 m2.") == (
        "The apartment has 2 bedrooms and 85 m2."
    )


def test_strips_emoji():
    assert strip_emojis("Thanks! 😊🏠") == "Thanks! "


def test_strips_name_placeholders():
    text = strip_placeholders("Best regards, [Your Name] {agent name} <name>")
    assert text.strip() == "Best regards,"


@pytest.mark.parametrize(
    "placeholder",
    [
        "[Client Name]",
        "[Seu Nome]",
        "[Sua Nome]",
        "{nome do corretor}",
        "<nome do atendente>",
        "[nome]",
        "{Nome}",
        "<nome>",
    ],
)
def test_strips_client_and_portuguese_placeholders(placeholder):
    assert strip_placeholders(f"Obrigado, {placeholder}!") == "Obrigado, !"


def test_drops_scheduling_sentences():
    text = drop_scheduling_sentences(
        "Thanks for reaching out. We can schedule a visit tomorrow at 10. "
        "The agent will follow up."
    )
    assert text == "Thanks for reaching out. The agent will follow up."


def test_clamp_text():
    assert clamp_text("abcdef", 3) == "abc"
    assert clamp_text("ab  cd", 4) == "ab"
    assert clamp_text("abc", 10) == "abc"


def test_apply_cleans_and_normalizes():
    draft = (
        "Hi Ana!   Thanks for your message 😊\n\n\n\n"
        "More photos at https://example.com.   The agent will follow up. "
        "- [Your Name]"
    )

    result = apply_reply_guardrails(draft, 800)

    assert "https" not in result
    assert "😊" not in result
    assert "[Your Name]" not in result
    assert "\n\n\n" not in result
    assert "  " not in result
    assert result.startswith("Hi Ana! Thanks for your message")


def test_apply_clamps_length():
    result = apply_reply_guardrails("word " * 400, 800)
    assert 5 <= len(result) <= 800


def test_apply_rejects_empty_output():
    assert apply_reply_guardrails("", 800) == ""
    assert apply_reply_guardrails(None, 800) == ""
    assert apply_reply_guardrails("😊 https://x.io", 800) == ""
    assert apply_reply_guardrails("Ok", 800) == ""


def test_apply_rejects_all_scheduling_reply():
    assert apply_reply_guardrails("Let's book a visit for Saturday.", 800) == ""


def test_apply_never_adds_text():
    draft = "Thanks for your message, the agent will follow up."
    assert apply_reply_guardrails(draft, 800) == draft
