import pytest

from app import config
from app.core.detectors import is_resolution_message, needs_escalation


@pytest.mark.parametrize("phrase", config.DEFAULT_ESCALATION_PHRASES)
def test_every_escalation_phrase_matches(phrase):
    assert needs_escalation(f"Sure. {phrase.upper()} Thanks!", config.DEFAULT_ESCALATION_PHRASES)


@pytest.mark.parametrize("phrase", config.DEFAULT_RESOLUTION_PHRASES)
def test_every_resolution_phrase_matches(phrase):
    assert is_resolution_message(phrase.title(), config.DEFAULT_RESOLUTION_PHRASES)


def test_unrelated_text_does_not_match():
    assert not needs_escalation("Your order ships tomorrow.", config.DEFAULT_ESCALATION_PHRASES)
    assert not is_resolution_message("Let me check that for you.", config.DEFAULT_RESOLUTION_PHRASES)


def test_hand_off_reply():
    reply = "Please allow me to connect you to our Human Representative."
    assert needs_escalation(reply, config.DEFAULT_ESCALATION_PHRASES)


def test_short_hand_off_wording():
    assert needs_escalation("I will connect you to our Human Representative.", config.DEFAULT_ESCALATION_PHRASES)


@pytest.mark.parametrize("text", [None, "", 123])
def test_empty_or_non_text(text):
    assert not needs_escalation(text, config.DEFAULT_ESCALATION_PHRASES)
    assert not is_resolution_message(text, config.DEFAULT_RESOLUTION_PHRASES)


def test_custom_phrase_list():
    assert needs_escalation("Let me get a supervisor", ["SUPERVISOR"])
    assert not needs_escalation("Let me get a supervisor", [])
