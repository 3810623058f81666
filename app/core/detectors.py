"""Phrase matching for hand-off (bot reply) and hand-back (agent message) intent."""
from typing import Iterable, Optional


def contains_any_phrase(text: Optional[str], phrases: Iterable[str]) -> bool:
    if not text or not isinstance(text, str):
        return False
    lowered = text.lower()
    return any(phrase.lower() in lowered for phrase in phrases if phrase)


def needs_escalation(reply_text: Optional[str], phrases: Iterable[str]) -> bool:
    """True when a generated reply says it is handing the conversation to a human."""
    return contains_any_phrase(reply_text, phrases)


def is_resolution_message(agent_text: Optional[str], phrases: Iterable[str]) -> bool:
    """True when a human agent's message signals the conversation goes back to the bot."""
    return contains_any_phrase(agent_text, phrases)
