"""Conversation ownership DTO schemas."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class OwnershipState(str, Enum):
    """Who is allowed to answer the end-user."""
    WITH_AUTOMATION = "with_automation"
    WITH_HUMAN = "with_human"


class OwnershipRecord(BaseModel):
    """Local ownership cache entry for one conversation."""
    model_config = ConfigDict(from_attributes=True)

    conversation_id: str = Field(..., description="Platform conversation ID")
    ownership_state: OwnershipState = Field(default=OwnershipState.WITH_AUTOMATION)
    session_handle: Optional[str] = Field(default=None, description="Generative backend session (thread) ID")

    @computed_field
    @property
    def is_escalated(self) -> bool:
        return self.ownership_state == OwnershipState.WITH_HUMAN


class ReconcileReason(str, Enum):
    """Which rule decided the authoritative state."""
    FETCH_FAILED = "fetch_failed"
    ASSIGNED_TO_HUMAN = "assigned_to_human"
    REOPENED = "reopened"
    SELF_HEALED = "self_healed"
    LOCAL_STATE = "local_state"


class Reconciliation(BaseModel):
    """Outcome of combining the local record with the platform's current assignee."""

    conversation_id: str
    state: OwnershipState
    reason: ReconcileReason
    assignee_agent_id: Optional[str] = None

    @computed_field
    @property
    def automation_may_respond(self) -> bool:
        return self.state == OwnershipState.WITH_AUTOMATION


class RespondOutcome(BaseModel):
    """Result of one run of the respond pipeline."""

    conversation_id: str
    responded: bool = False
    escalated: bool = False
    reason: Optional[str] = None
    reply_preview: Optional[str] = None
    error: Optional[str] = None
