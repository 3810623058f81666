"""Pydantic v2 DTO schemas.

Quick Import Guide:
    from app.schemas import (
        # Canonical event produced by the classifier
        CanonicalEvent, ActionKind, ActorKind,
        # Ownership state
        OwnershipRecord, OwnershipState, Reconciliation, ReconcileReason, RespondOutcome,
        # Freshchat payloads
        FreshchatConversation, FreshchatOutgoingMessage, FreshchatAssignment,
        # Generative backends
        GenerationResult, DifyResponse,
    )
"""

from app.schemas.dify import DifyResponse
from app.schemas.events import ActionKind, ActorKind, CanonicalEvent
from app.schemas.freshchat import (
    FreshchatAssignment,
    FreshchatConversation,
    FreshchatOutgoingMessage,
    normalize_agent_id,
)
from app.schemas.generation import GenerationResult
from app.schemas.ownership import (
    OwnershipRecord,
    OwnershipState,
    Reconciliation,
    ReconcileReason,
    RespondOutcome,
)

__all__ = [
    # Events
    "ActionKind",
    "ActorKind",
    "CanonicalEvent",
    # Ownership
    "OwnershipRecord",
    "OwnershipState",
    "Reconciliation",
    "ReconcileReason",
    "RespondOutcome",
    # Freshchat
    "FreshchatAssignment",
    "FreshchatConversation",
    "FreshchatOutgoingMessage",
    "normalize_agent_id",
    # Generation
    "GenerationResult",
    "DifyResponse",
]
