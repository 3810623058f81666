"""Freshchat conversation API client."""
import logging
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter
from pydantic import ValidationError

from app import config
from app.schemas import FreshchatAssignment, FreshchatConversation, FreshchatOutgoingMessage
from app.utils import ExternalReadFailure, ExternalWriteFailure, handle_api_errors

logger = logging.getLogger(__name__)


router = APIRouter(tags=["freshchat"])


class FreshchatHandler:
    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        read_timeout: float | None = None,
        write_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = (api_url or config.FRESHCHAT_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.FRESHCHAT_API_KEY
        self.read_timeout = read_timeout or config.FRESHCHAT_READ_TIMEOUT
        self.write_timeout = write_timeout or config.FRESHCHAT_WRITE_TIMEOUT
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        self.conversations_url = f"{self.api_url}/conversations"
        self.agents_url = f"{self.api_url}/agents"

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=timeout)

    @staticmethod
    def _json_or_empty(response: httpx.Response) -> Any:
        if response.content and len(response.content.strip()) > 0:
            try:
                return response.json()
            except Exception as json_err:
                logger.warning(f"Failed to parse JSON response: {json_err}")
        return {}

    async def get_conversation(self, conversation_id: str) -> FreshchatConversation:
        """Fetch the conversation resource, including its current assignee."""
        url = f"{self.conversations_url}/{conversation_id}"

        try:
            async with self._client(self.read_timeout) as client:
                response = await client.get(url, headers=self.headers)
                response.raise_for_status()
                data = self._json_or_empty(response)
                return FreshchatConversation.model_validate(data if isinstance(data, dict) else {})
        except ValidationError as e:
            logger.error(f"Unexpected conversation body for {conversation_id}: {e}")
            raise ExternalReadFailure(
                f"Get conversation returned an invalid body: {e.error_count()} errors",
                operation="get conversation",
                conversation_id=conversation_id,
            ) from e
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Get conversation failed for {conversation_id}:\n"
                f"URL: {url}\nStatus: {e.response.status_code}\n"
                f"Response: {e.response.text}"
            )
            raise ExternalReadFailure(
                f"Get conversation returned {e.response.status_code}",
                operation="get conversation",
                conversation_id=conversation_id,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch conversation {conversation_id}: {e!r}")
            raise ExternalReadFailure(
                f"Get conversation failed: {e!r}",
                operation="get conversation",
                conversation_id=conversation_id,
            ) from e

    async def get_assignee(self, conversation_id: str) -> Optional[str]:
        """Return the agent ID the conversation is currently assigned to, or None when unassigned."""
        conversation = await self.get_conversation(conversation_id)
        return conversation.assigned_agent_id

    async def assign_conversation(
        self, conversation_id: str, agent_id: str, status: str = "assigned"
    ) -> Dict[str, Any]:
        """Assign a conversation to an agent."""
        url = f"{self.conversations_url}/{conversation_id}"
        data = FreshchatAssignment(assigned_agent_id=agent_id, status=status).model_dump()

        try:
            async with self._client(self.write_timeout) as client:
                response = await client.put(url, json=data, headers=self.headers)
                response.raise_for_status()
                return self._json_or_empty(response)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Assignment failed for conversation {conversation_id}:\n"
                f"URL: {url}\nStatus: {e.response.status_code}\n"
                f"Response: {e.response.text}\nAgent: {agent_id}"
            )
            raise ExternalWriteFailure(
                f"Assignment returned {e.response.status_code}",
                operation="assign conversation",
                conversation_id=conversation_id,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to assign conversation {conversation_id} to agent {agent_id}: {e!r}")
            raise ExternalWriteFailure(
                f"Assignment failed: {e!r}",
                operation="assign conversation",
                conversation_id=conversation_id,
            ) from e

    async def send_message(
        self, conversation_id: str, message: str, actor_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Post a normal (customer-visible) agent message to a conversation."""
        url = f"{self.conversations_url}/{conversation_id}/messages"
        payload = FreshchatOutgoingMessage.text(message, actor_id=actor_id).to_payload()

        logger.info(f"Sending message to conversation {conversation_id}: {message[:100]}")
        try:
            async with self._client(self.write_timeout) as client:
                response = await client.post(url, json=payload, headers=self.headers)
                response.raise_for_status()
                return self._json_or_empty(response)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Send message failed for conversation {conversation_id}:\n"
                f"URL: {url}\nStatus: {e.response.status_code}\n"
                f"Response: {e.response.text}"
            )
            raise ExternalWriteFailure(
                f"Send message returned {e.response.status_code}",
                operation="send message",
                conversation_id=conversation_id,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to send message to conversation {conversation_id}: {e!r}")
            raise ExternalWriteFailure(
                f"Send message failed: {e!r}",
                operation="send message",
                conversation_id=conversation_id,
            ) from e

    async def get_agents(self) -> List[Dict[str, Any]]:
        """List the account's agents (used to discover the bot and human agent IDs)."""
        try:
            async with self._client(self.write_timeout) as client:
                response = await client.get(self.agents_url, headers=self.headers)
                response.raise_for_status()
                data = self._json_or_empty(response)
        except httpx.HTTPStatusError as e:
            raise ExternalReadFailure(
                f"List agents returned {e.response.status_code}",
                operation="list agents",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ExternalReadFailure(f"List agents failed: {e!r}", operation="list agents") from e

        if isinstance(data, dict) and "agents" in data:
            agents = data["agents"]
        elif isinstance(data, list):
            agents = data
        else:
            agents = []

        logger.info(f"Retrieved {len(agents)} agents from Freshchat")
        return agents


# Global handler instance
freshchat = FreshchatHandler()


@router.get("/list-agents")
@handle_api_errors("list agents")
async def list_agents() -> Dict[str, Any]:
    """List Freshchat agents so the bot and human agent IDs can be configured."""
    agents = await freshchat.get_agents()
    return {"success": True, "agents": agents}
