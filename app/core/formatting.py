"""Turn raw generated replies into plain chat text.

Assistant replies carry retrieval citations and markdown that chat clients such as
WhatsApp render literally, so both are stripped before sending.
"""
import re
from typing import Any

INLINE_CITATION_PATTERNS = [
    re.compile(r"\[\^\d+\^\]"),
    re.compile(r"\[\d+\]"),
    re.compile(r"【[^】]*】"),
    re.compile(r"\(Source:[^)]+\)", re.I),
    re.compile(r"\[Source:[^\]]+\]", re.I),
    re.compile(r"\[\d+:\d+[^\]]*\]"),
    re.compile(r"\(\d+:\d+[^)]*\)"),
    re.compile(r"\^\[\d+\]"),
    re.compile(r"\[\^\d+\]"),
    re.compile(r"\[\d+[:\d,†]*[^\]]*\]"),
]

# Lines that start one of these get a blank line before them
PARAGRAPH_LEADS = [
    "Would you like",
    "Do you want",
    "Do you need",
    "Would you prefer",
    "May I know",
    "Please let me know",
    "I have tried my best",
    "If you want me to continue",
    "If you want me to assist",
    "If you require further",
    "Please reply with",
]

GREETING_PATTERN = re.compile(
    r"(Hello!?|Hi!?|Good morning!?|Good afternoon!?|Good evening!?)\s*\n([^\n])", re.I
)


def strip_citations(text: Any) -> Any:
    if not text or not isinstance(text, str):
        return text

    cleaned = text
    for pattern in INLINE_CITATION_PATTERNS:
        cleaned = pattern.sub("", cleaned)

    # footnote definitions
    cleaned = re.sub(r"^\s*\[\^\d+\^\]:.*$", "", cleaned, flags=re.M)
    cleaned = re.sub(r"^\s*【[^】]*】.*$", "", cleaned, flags=re.M)

    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
    cleaned = re.sub(r"\s+\n", "\n", cleaned)
    cleaned = re.sub(r"\s+\.", ".", cleaned)
    cleaned = re.sub(r"\.{2,}", ".", cleaned)
    cleaned = re.sub(r"\s+([,;:!?])", r"\1", cleaned)
    return cleaned.strip()


def format_for_chat(text: Any) -> Any:
    """Convert markdown to plain text with chat-friendly bullets and spacing."""
    if not text or not isinstance(text, str):
        return text

    formatted = text.strip()

    # links keep only the URL
    formatted = re.sub(r"\[([^\]]+)\]\(([^)]+)\)", r"\2", formatted)
    formatted = re.sub(r"\*\*(.*?)\*\*", r"\1", formatted)
    formatted = re.sub(r"\*(.*?)\*", r"\1", formatted)
    formatted = re.sub(r"__(.*?)__", r"\1", formatted)
    formatted = re.sub(r"_(.*?)_", r"\1", formatted)
    formatted = re.sub(r"`([^`]+)`", r"\1", formatted)
    formatted = re.sub(r"^#+\s*(.*)$", lambda match: match.group(1).upper(), formatted, flags=re.M)
    formatted = re.sub(r"^[\u2022▪◦-]\s*", "• ", formatted, flags=re.M)

    # blank line before a bullet list, none inside it, one after it
    formatted = re.sub(r"([^\n•])\n(•\s)", r"\1\n\n\2", formatted)
    formatted = re.sub(r"(•\s[^\n]+)\n\n+(•\s)", r"\1\n\2", formatted)
    formatted = re.sub(r"(•\s[^\n]+)\n([^•\n\s])", r"\1\n\n\2", formatted)

    for lead in PARAGRAPH_LEADS:
        formatted = re.sub(r"([^\n])\n(" + re.escape(lead) + ")", r"\1\n\n\2", formatted)
    formatted = GREETING_PATTERN.sub(r"\1\n\n\2", formatted)
    formatted = re.sub(r"([^\n])\n(For [A-Z]{2,3} )", r"\1\n\n\2", formatted)
    formatted = re.sub(r"\n{3,}", "\n\n", formatted)

    return "\n".join(line.rstrip() for line in formatted.split("\n")).strip()


def clean(raw_reply: Any) -> Any:
    """Sanitize a generated reply for display. Non-text input is returned unchanged."""
    return format_for_chat(strip_citations(raw_reply))
