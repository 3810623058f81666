"""Normalize Freshchat webhook bodies into CanonicalEvent objects.

Freshchat sends the same semantic field at different paths depending on where the
event originated (assignment UI, REST API, or the ``changes.model_changes`` change
log), and some deployments omit the action name for assignment updates. Every
lookup here tolerates missing or mistyped fields at any depth.
"""
import logging
from typing import Any, Iterable, Optional, Sequence, Set, Tuple

from app.schemas import ActionKind, ActorKind, CanonicalEvent, normalize_agent_id

logger = logging.getLogger(__name__)

MESSAGE_CREATE_ACTION = "message_create"

ASSIGNMENT_ACTIONS = frozenset(
    {
        "conversation_update",
        "conversation_assignment",
        "assignment_update",
        "agent_assignment",
        "conversation_reassignment",
    }
)

MEDIA_PART_KINDS = ("image", "file", "attachment", "video", "audio", "sticker")

CONVERSATION_ID_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("conversation", "id"),
    ("conversation", "conversation_id"),
    ("message", "conversation_id"),
    ("assignment", "conversation", "id"),
    ("assignment", "conversation_id"),
)

ASSIGNEE_ID_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("conversation", "assigned_agent_id"),
    ("conversation", "assignee", "id"),
    ("assignment", "to_agent_id"),
    ("assignment", "assignee", "id"),
)

CHANGELOG_ASSIGNEE_PATH = ("changes", "model_changes", "assigned_agent_id")

_MISSING = object()


def dig(data: Any, *path: str, default: Any = None) -> Any:
    """Walk nested dicts, returning ``default`` as soon as a level is missing or not a dict."""
    current = data
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def has_path(data: Any, *path: str) -> bool:
    """True when the key exists at ``path``, even if its value is null."""
    return dig(data, *path, default=_MISSING) is not _MISSING


def first_present_id(data: Any, paths: Iterable[Sequence[str]]) -> Optional[str]:
    for path in paths:
        value = normalize_agent_id(dig(data, *path))
        if value:
            return value
    return None


def extract_conversation_id(data: Any) -> Optional[str]:
    return first_present_id(data, CONVERSATION_ID_PATHS)


def extract_assigned_agent_id(data: Any) -> Optional[str]:
    return first_present_id(data, ASSIGNEE_ID_PATHS)


def extract_changelog_assignees(data: Any) -> Tuple[Optional[str], Optional[str]]:
    """Return (old, new) from a change-log entry shaped ``[old, new]`` or ``{"old": .., "new": ..}``."""
    change = dig(data, *CHANGELOG_ASSIGNEE_PATH)
    if isinstance(change, (list, tuple)):
        old = change[0] if len(change) > 0 else None
        new = change[1] if len(change) > 1 else None
    elif isinstance(change, dict):
        old, new = change.get("old"), change.get("new")
    else:
        return None, None
    return normalize_agent_id(old), normalize_agent_id(new)


def is_assignment_event(action: Optional[str], data: Any) -> bool:
    has_assignment_data = (
        has_path(data, "assignment")
        or has_path(data, "conversation", "assigned_agent_id")
        or has_path(data, *CHANGELOG_ASSIGNEE_PATH)
    )
    return action in ASSIGNMENT_ACTIONS or has_assignment_data


def extract_message_content(message_parts: Any) -> Tuple[Optional[str], Set[str]]:
    """Return the text content (last text part wins) and the set of media kinds present."""
    if not isinstance(message_parts, list):
        return None, set()

    text: Optional[str] = None
    media_kinds: Set[str] = set()
    for part in message_parts:
        if not isinstance(part, dict):
            continue
        content = dig(part, "text", "content")
        if isinstance(content, str) and content.strip():
            text = content
        for kind in MEDIA_PART_KINDS:
            if part.get(kind):
                media_kinds.add(kind)
    return text, media_kinds


def _actor_kind(actor: Any) -> ActorKind:
    actor_type = dig(actor, "actor_type")
    if actor_type == "user":
        return ActorKind.END_USER
    if actor_type == "agent":
        return ActorKind.AGENT
    return ActorKind.UNKNOWN


def _classify_message(action: str, actor: Any, data: Any) -> CanonicalEvent:
    actor_kind = _actor_kind(actor)
    text, media_kinds = extract_message_content(dig(data, "message", "message_parts"))
    conversation_id = normalize_agent_id(dig(data, "message", "conversation_id")) or extract_conversation_id(data)
    return CanonicalEvent(
        action_kind=ActionKind.MESSAGE_CREATE,
        actor_kind=actor_kind,
        action=action,
        conversation_id=conversation_id,
        message_id=normalize_agent_id(dig(data, "message", "id")),
        text=text,
        media_kinds=media_kinds,
        actor_agent_id=normalize_agent_id(dig(actor, "actor_id")) if actor_kind == ActorKind.AGENT else None,
    )


def _classify_assignment(action: Optional[str], actor: Any, data: Any) -> CanonicalEvent:
    old_assignee, changelog_new = extract_changelog_assignees(data)
    return CanonicalEvent(
        action_kind=ActionKind.ASSIGNMENT_CHANGE,
        actor_kind=_actor_kind(actor),
        action=action,
        conversation_id=extract_conversation_id(data),
        new_assignee_agent_id=changelog_new or extract_assigned_agent_id(data),
        old_assignee_agent_id=old_assignee,
    )


def classify(body: Any) -> CanonicalEvent:
    """Classify a raw webhook body. Never raises; unknown shapes become UNCLASSIFIED."""
    if not isinstance(body, dict):
        logger.info(f"Webhook body is not an object ({type(body).__name__}), ignoring")
        return CanonicalEvent.unclassified()

    action = body.get("action") if isinstance(body.get("action"), str) else None
    actor = body.get("actor")
    data = body.get("data") if isinstance(body.get("data"), dict) else {}

    if action == MESSAGE_CREATE_ACTION:
        return _classify_message(action, actor, data)
    if is_assignment_event(action, data):
        return _classify_assignment(action, actor, data)
    return CanonicalEvent.unclassified(action=action, conversation_id=extract_conversation_id(data))
