"""Canonical inbound event produced by the webhook classifier."""
from enum import Enum
from typing import Optional, Set

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ActionKind(str, Enum):
    """What happened on the platform."""
    MESSAGE_CREATE = "message_create"
    ASSIGNMENT_CHANGE = "assignment_change"
    UNCLASSIFIED = "unclassified"


class ActorKind(str, Enum):
    """Who caused it. Only meaningful for message events."""
    END_USER = "end_user"
    AGENT = "agent"
    UNKNOWN = "unknown"


class CanonicalEvent(BaseModel):
    """Normalized view of one webhook call, independent of the payload shape it arrived in."""
    model_config = ConfigDict(frozen=True)

    action_kind: ActionKind = Field(..., description="Classified action")
    actor_kind: ActorKind = Field(default=ActorKind.UNKNOWN, description="Classified actor")
    action: Optional[str] = Field(default=None, description="Raw action name from the payload")
    conversation_id: Optional[str] = Field(default=None, description="Platform conversation ID")

    # MessageCreate
    message_id: Optional[str] = Field(default=None, description="Platform message ID, when present")
    text: Optional[str] = Field(default=None, description="Text content of the message")
    media_kinds: Set[str] = Field(default_factory=set, description="Media tags present (image, file, ...)")
    actor_agent_id: Optional[str] = Field(default=None, description="Agent ID when the actor is an agent")

    # AssignmentChange
    new_assignee_agent_id: Optional[str] = Field(default=None, description="Effective new assignee")
    old_assignee_agent_id: Optional[str] = Field(default=None, description="Previous assignee from change log")

    @computed_field
    @property
    def has_media(self) -> bool:
        return bool(self.media_kinds)

    @computed_field
    @property
    def has_text(self) -> bool:
        return bool(self.text)

    @classmethod
    def unclassified(cls, action: Optional[str] = None, conversation_id: Optional[str] = None) -> "CanonicalEvent":
        return cls(action_kind=ActionKind.UNCLASSIFIED, action=action, conversation_id=conversation_id)
