"""Route classified webhook events to ownership transitions and the respond pipeline."""
import logging
from collections import OrderedDict
from typing import Dict, Optional

from app.core.detectors import is_resolution_message, needs_escalation
from app.core.formatting import clean
from app.core.reconciler import OwnershipReconciler
from app.core.settings import BrokerSettings
from app.core.store import OwnershipStore
from app.core.transitions import TransitionEngine
from app.schemas import ActionKind, ActorKind, CanonicalEvent, OwnershipState, RespondOutcome
from app.utils import ExternalWriteFailure

logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """Processes one event at a time per conversation.

    Each event is handled entirely under the conversation's lock, so two messages for
    the same conversation never both decide the bot owns it and reply twice.
    """

    def __init__(self, store: OwnershipStore, platform, generator, settings: BrokerSettings):
        self.store = store
        self.platform = platform
        self.generator = generator
        self.settings = settings
        self.reconciler = OwnershipReconciler(store, platform, settings)
        self.transitions = TransitionEngine(store, platform, settings)
        self._seen_messages: "OrderedDict[str, None]" = OrderedDict()

    def _is_duplicate(self, event: CanonicalEvent) -> bool:
        if not self.settings.deduplicate_messages or not event.message_id:
            return False
        key = f"{event.conversation_id}:{event.message_id}"
        if key in self._seen_messages:
            return True
        self._seen_messages[key] = None
        while len(self._seen_messages) > self.settings.dedup_window_size:
            self._seen_messages.popitem(last=False)
        return False

    async def dispatch(self, event: CanonicalEvent) -> Optional[RespondOutcome]:
        if event.action_kind == ActionKind.UNCLASSIFIED:
            logger.info(f"Ignoring unclassified webhook (action: {event.action})")
            return None
        if not event.conversation_id:
            logger.warning(f"Ignoring {event.action_kind.value} event without a conversation id")
            return None
        if event.action_kind == ActionKind.MESSAGE_CREATE and self._is_duplicate(event):
            logger.info(f"Ignoring duplicate message {event.message_id} in conversation {event.conversation_id}")
            return None

        async with self.store.locked(event.conversation_id):
            if event.action_kind == ActionKind.ASSIGNMENT_CHANGE:
                await self._on_assignment(event)
                return None

            if event.actor_kind == ActorKind.AGENT:
                await self._on_agent_message(event)
                return None

            if event.actor_kind == ActorKind.END_USER:
                if event.has_text:
                    return await self._respond(event.conversation_id, event.text)
                if event.has_media:
                    await self._acknowledge_media(event)
                    return None
                logger.info(f"User message in conversation {event.conversation_id} has no text or media")
                return None

        logger.info(f"Ignoring message from {event.actor_kind.value} actor in conversation {event.conversation_id}")
        return None

    async def _on_assignment(self, event: CanonicalEvent) -> None:
        conversation_id = event.conversation_id
        new_assignee = event.new_assignee_agent_id
        logger.info(
            f"Assignment event for conversation {conversation_id}: "
            f"{event.old_assignee_agent_id or 'unknown'} -> {new_assignee or 'none'}"
        )
        if not new_assignee:
            return

        if self.settings.is_automation_agent(new_assignee):
            # Already reassigned on the platform, resync local state and greet
            await self.transitions.deescalate(conversation_id, send_welcome=True, reassign_externally=False)
            return

        if not self.store.is_escalated(conversation_id):
            logger.info(f"Conversation {conversation_id} assigned to human agent {new_assignee}")
            self.store.set_state(conversation_id, OwnershipState.WITH_HUMAN)

    async def _on_agent_message(self, event: CanonicalEvent) -> None:
        conversation_id = event.conversation_id
        if not event.actor_agent_id or self.settings.is_automation_agent(event.actor_agent_id):
            return
        if not self.store.is_escalated(conversation_id):
            return
        if is_resolution_message(event.text, self.settings.resolution_phrases):
            logger.info(f"Resolution phrase from agent {event.actor_agent_id} in conversation {conversation_id}")
            await self.transitions.deescalate(conversation_id, send_welcome=True, reassign_externally=True)

    async def _acknowledge_media(self, event: CanonicalEvent) -> None:
        conversation_id = event.conversation_id
        reconciliation = await self.reconciler.reconcile(conversation_id)
        if not reconciliation.automation_may_respond:
            logger.info(f"Conversation {conversation_id} is with a human, skipping media acknowledgement")
            return

        await self.transitions.auto_claim(conversation_id)
        logger.info(f"Media-only message ({', '.join(sorted(event.media_kinds))}) in conversation {conversation_id}")
        try:
            await self.platform.send_message(
                conversation_id, self.settings.media_ack_message, actor_id=self.settings.automation_agent_id
            )
        except ExternalWriteFailure as e:
            logger.error(f"Failed to send media acknowledgement to conversation {conversation_id}: {e}")

    async def respond(self, conversation_id: str, user_text: str) -> RespondOutcome:
        """Run the respond pipeline for one user message, holding the conversation lock."""
        async with self.store.locked(conversation_id):
            return await self._respond(conversation_id, user_text)

    async def _respond(self, conversation_id: str, user_text: str) -> RespondOutcome:
        reconciliation = await self.reconciler.reconcile(conversation_id)
        if not reconciliation.automation_may_respond:
            logger.info(f"Conversation {conversation_id} is with a human agent, bot stays silent")
            return RespondOutcome(conversation_id=conversation_id, reason=reconciliation.reason.value)

        await self.transitions.auto_claim(conversation_id)

        session_handle = self.store.get(conversation_id).session_handle
        try:
            result = await self.generator.respond(session_handle, user_text)
            self.store.set_session_handle(conversation_id, result.session_handle)

            reply = clean(result.reply_text)
            if not reply:
                raise ValueError("Reply was empty after cleaning")

            await self.platform.send_message(conversation_id, reply, actor_id=self.settings.automation_agent_id)
        except Exception as e:
            logger.error(f"Respond pipeline failed for conversation {conversation_id}: {e}", exc_info=True)
            escalated = False
            if self.settings.human_agent_id:
                logger.info(f"Escalating conversation {conversation_id} after failure")
                escalated = await self.transitions.escalate(conversation_id)
            return RespondOutcome(
                conversation_id=conversation_id,
                escalated=escalated,
                reason="failed",
                error=str(e),
            )

        escalated = False
        if needs_escalation(result.reply_text, self.settings.escalation_phrases):
            logger.info(f"Escalation phrase in reply for conversation {conversation_id}")
            escalated = await self.transitions.escalate(conversation_id)

        return RespondOutcome(
            conversation_id=conversation_id,
            responded=True,
            escalated=escalated,
            reason="replied",
            reply_preview=reply[:200],
        )

    async def return_to_bot(self, conversation_id: str, send_message: bool = True) -> bool:
        async with self.store.locked(conversation_id):
            return await self.transitions.deescalate(
                conversation_id, send_welcome=send_message, reassign_externally=True
            )

    async def force_return(self, conversation_id: str) -> Dict[str, bool]:
        async with self.store.locked(conversation_id):
            return await self.transitions.force_return(conversation_id)

    async def reset(self, conversation_id: str) -> bool:
        async with self.store.locked(conversation_id):
            return self.store.remove(conversation_id)
