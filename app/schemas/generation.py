"""Generative-response backend DTO schemas."""
from pydantic import BaseModel, Field


class GenerationResult(BaseModel):
    """A reply produced by the generative backend plus the session it belongs to."""

    reply_text: str = Field(..., description="Raw reply text, before formatting")
    session_handle: str = Field(..., description="Backend session (thread / conversation) ID")
