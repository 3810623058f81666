"""Freshchat API-related Pydantic v2 DTO schemas."""
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_agent_id(value: Any) -> Optional[str]:
    """Platform IDs arrive as strings or numbers; empty values mean 'unassigned'."""
    if value is None or value is False:
        return None
    text = str(value).strip()
    return text or None


class FreshchatConversation(BaseModel):
    """Schema for the conversation resource returned by GET /conversations/{id}."""
    model_config = ConfigDict(extra="allow")

    conversation_id: Optional[str] = Field(default=None, description="Freshchat conversation ID")
    assigned_agent_id: Optional[str] = Field(default=None, description="Current assignee agent ID")
    status: Optional[str] = Field(default=None, description="Conversation status (new, assigned, resolved)")

    @field_validator("conversation_id", "assigned_agent_id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Optional[str]:
        return normalize_agent_id(v)


class FreshchatTextContent(BaseModel):
    content: str


class FreshchatMessagePart(BaseModel):
    text: FreshchatTextContent


class FreshchatOutgoingMessage(BaseModel):
    """Schema for POST /conversations/{id}/messages."""

    message_parts: List[FreshchatMessagePart]
    message_type: Literal["normal", "private"] = "normal"
    actor_type: Literal["agent", "user"] = "agent"
    actor_id: Optional[str] = Field(default=None, description="Sending agent; omitted when unset")

    @classmethod
    def text(cls, content: str, actor_id: Optional[str] = None) -> "FreshchatOutgoingMessage":
        return cls(
            message_parts=[FreshchatMessagePart(text=FreshchatTextContent(content=content))],
            actor_id=actor_id,
        )

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class FreshchatAssignment(BaseModel):
    """Schema for PUT /conversations/{id} assignment updates."""

    assigned_agent_id: str
    status: str = "assigned"
