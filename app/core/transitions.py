"""Ownership transitions that touch both the platform and the local store.

Callers are expected to hold ``store.locked(conversation_id)``. Every operation is
idempotent for a given target state, so duplicate or reordered webhooks converge.
"""
import logging
from typing import Dict

from app.core.settings import BrokerSettings
from app.core.store import OwnershipStore
from app.schemas import OwnershipState
from app.utils import ExternalReadFailure, ExternalWriteFailure

logger = logging.getLogger(__name__)


class TransitionEngine:
    def __init__(self, store: OwnershipStore, platform, settings: BrokerSettings):
        self.store = store
        self.platform = platform
        self.settings = settings

    async def escalate(self, conversation_id: str) -> bool:
        """Hand the conversation to the human agent.

        Local state becomes WITH_HUMAN even when the platform write fails, so the bot
        stays quiet rather than risking a reply alongside a human.
        """
        human_agent_id = self.settings.human_agent_id
        if not human_agent_id:
            logger.warning(f"HUMAN_AGENT_ID not configured, cannot escalate conversation {conversation_id}")
            return False

        logger.info(f"Escalating conversation {conversation_id} to human agent {human_agent_id}")
        try:
            await self.platform.assign_conversation(conversation_id, human_agent_id)
            logger.info(f"Conversation {conversation_id} assigned to human agent {human_agent_id}")
        except ExternalWriteFailure as e:
            logger.error(f"Failed to assign conversation {conversation_id} to human agent: {e}")

        self.store.set_state(conversation_id, OwnershipState.WITH_HUMAN)
        return True

    async def deescalate(
        self, conversation_id: str, send_welcome: bool = True, reassign_externally: bool = True
    ) -> bool:
        """Give the conversation back to the bot."""
        bot_agent_id = self.settings.automation_agent_id
        if not bot_agent_id:
            logger.warning(f"FRESHCHAT_BOT_AGENT_ID not configured, cannot return conversation {conversation_id}")
            return False

        logger.info(f"Returning conversation {conversation_id} to bot")
        if reassign_externally:
            try:
                await self.platform.assign_conversation(conversation_id, bot_agent_id)
            except ExternalWriteFailure as e:
                # Usually already assigned from the Freshchat UI
                logger.warning(f"Could not reassign conversation {conversation_id} to bot: {e}")

        self.store.set_state(conversation_id, OwnershipState.WITH_AUTOMATION)

        if send_welcome:
            await self._send_welcome(conversation_id)
        return True

    async def auto_claim(self, conversation_id: str) -> bool:
        """Assign an unassigned conversation to the bot. Never takes one from a human.

        Returns True only when an assignment was made.
        """
        bot_agent_id = self.settings.automation_agent_id
        if not bot_agent_id:
            return False

        try:
            assignee = await self.platform.get_assignee(conversation_id)
        except ExternalReadFailure as e:
            logger.warning(f"Could not check assignment for conversation {conversation_id}: {e}")
            return False

        if assignee:
            if assignee != bot_agent_id:
                logger.info(f"Conversation {conversation_id} is assigned to agent {assignee}, not claiming")
            return False

        try:
            await self.platform.assign_conversation(conversation_id, bot_agent_id)
        except ExternalWriteFailure as e:
            logger.warning(f"Auto-assign to bot failed for conversation {conversation_id}: {e}")
            return False

        logger.info(f"Auto-assigned conversation {conversation_id} to bot")
        return True

    async def force_return(self, conversation_id: str) -> Dict[str, bool]:
        """Operator override: forget local ownership and put the bot back in charge."""
        was_tracked = self.store.remove(conversation_id)
        reassigned = False

        bot_agent_id = self.settings.automation_agent_id
        if bot_agent_id:
            try:
                await self.platform.assign_conversation(conversation_id, bot_agent_id)
                reassigned = True
            except ExternalWriteFailure as e:
                logger.warning(f"Force return could not reassign conversation {conversation_id}: {e}")

        message_sent = await self._send_welcome(conversation_id)
        logger.info(f"Force-returned conversation {conversation_id} to bot (was tracked: {was_tracked})")
        return {"was_tracked": was_tracked, "reassigned": reassigned, "message_sent": message_sent}

    async def _send_welcome(self, conversation_id: str) -> bool:
        try:
            await self.platform.send_message(
                conversation_id,
                self.settings.welcome_back_message,
                actor_id=self.settings.automation_agent_id,
            )
            return True
        except ExternalWriteFailure as e:
            logger.warning(f"Failed to send welcome back message to conversation {conversation_id}: {e}")
            return False
