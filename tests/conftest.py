from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from app.api.assistant import GenerativeBackend
from app.api.freshchat import FreshchatHandler
from app.core import BrokerSettings, OwnershipStore, WebhookDispatcher
from app.schemas import GenerationResult

BOT_AGENT_ID = "bot-agent-1"
HUMAN_AGENT_ID = "human-agent-7"


@pytest.fixture
def settings() -> BrokerSettings:
    return BrokerSettings(
        automation_agent_id=BOT_AGENT_ID,
        human_agent_id=HUMAN_AGENT_ID,
        media_ack_message="Please describe your question in text.",
        welcome_back_message="I'm back!",
    )


@pytest.fixture
def store() -> OwnershipStore:
    return OwnershipStore()


@pytest.fixture
def mock_freshchat():
    """Freshchat client with an unassigned conversation and successful writes."""
    handler = AsyncMock(spec=FreshchatHandler)
    handler.get_assignee.return_value = None
    handler.assign_conversation.return_value = {}
    handler.send_message.return_value = {"id": "msg-out-1"}
    handler.get_agents.return_value = [{"id": BOT_AGENT_ID}, {"id": HUMAN_AGENT_ID}]
    return handler


@pytest.fixture
def mock_generator():
    generator = AsyncMock(spec=GenerativeBackend)
    generator.name = "mock"
    generator.respond.return_value = GenerationResult(reply_text="Hello! How can I help?", session_handle="thread_1")
    return generator


@pytest.fixture
def dispatcher(store, mock_freshchat, mock_generator, settings) -> WebhookDispatcher:
    return WebhookDispatcher(store, mock_freshchat, mock_generator, settings)


# Webhook payload factories
@pytest.fixture
def user_message_factory():
    """Factory for Freshchat message_create bodies sent by the customer."""

    def _create(
        conversation_id: str = "conv-1",
        text: Optional[str] = "Hello",
        media: Optional[List[str]] = None,
        message_id: Optional[str] = "msg-1",
    ) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = []
        if text is not None:
            parts.append({"text": {"content": text}})
        for kind in media or []:
            parts.append({kind: {"url": f"https://example.com/{kind}"}})
        return {
            "actor": {"actor_type": "user", "actor_id": "user-42"},
            "action": "message_create",
            "data": {
                "message": {
                    "id": message_id,
                    "conversation_id": conversation_id,
                    "message_parts": parts,
                }
            },
        }

    return _create


@pytest.fixture
def agent_message_factory():
    """Factory for message_create bodies sent by an agent."""

    def _create(
        conversation_id: str = "conv-1",
        text: str = "Hi, this is Anna",
        agent_id: str = HUMAN_AGENT_ID,
        message_id: Optional[str] = "msg-agent-1",
    ) -> Dict[str, Any]:
        return {
            "actor": {"actor_type": "agent", "actor_id": agent_id},
            "action": "message_create",
            "data": {
                "message": {
                    "id": message_id,
                    "conversation_id": conversation_id,
                    "message_parts": [{"text": {"content": text}}],
                }
            },
        }

    return _create


@pytest.fixture
def assignment_factory():
    """Factory for assignment bodies in the change-log shape."""

    def _create(
        conversation_id: str = "conv-1",
        new_agent_id: Optional[str] = HUMAN_AGENT_ID,
        old_agent_id: Optional[str] = None,
        action: Optional[str] = "conversation_assignment",
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "actor": {"actor_type": "agent", "actor_id": "admin-1"},
            "data": {
                "conversation": {"conversation_id": conversation_id},
                "changes": {"model_changes": {"assigned_agent_id": [old_agent_id, new_agent_id]}},
            },
        }
        if action:
            body["action"] = action
        return body

    return _create
