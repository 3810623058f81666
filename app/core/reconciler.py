"""Derive authoritative ownership from the platform's current assignee."""
import logging

from app.core.settings import BrokerSettings
from app.core.store import OwnershipStore
from app.schemas import OwnershipState, Reconciliation, ReconcileReason
from app.utils import ExternalReadFailure

logger = logging.getLogger(__name__)


class OwnershipReconciler:
    def __init__(self, store: OwnershipStore, platform, settings: BrokerSettings):
        self.store = store
        self.platform = platform
        self.settings = settings

    async def reconcile(self, conversation_id: str) -> Reconciliation:
        """Re-read the assignee and bring the local record in line with it.

        The local record is a cache. The assignee set on the platform conversation is
        the source of truth, since agents can reassign conversations from the UI at any
        time. When the platform cannot be read the conversation is treated as
        automation-owned and the local record is left untouched.
        """
        try:
            assignee = await self.platform.get_assignee(conversation_id)
        except ExternalReadFailure as e:
            logger.warning(f"Could not read assignee for conversation {conversation_id}, failing open: {e}")
            return Reconciliation(
                conversation_id=conversation_id,
                state=OwnershipState.WITH_AUTOMATION,
                reason=ReconcileReason.FETCH_FAILED,
            )

        local = self.store.get(conversation_id)

        if assignee and not self.settings.is_automation_agent(assignee):
            if not local.is_escalated:
                logger.info(f"Conversation {conversation_id} is assigned to agent {assignee}, marking as with human")
                self.store.set_state(conversation_id, OwnershipState.WITH_HUMAN)
            return Reconciliation(
                conversation_id=conversation_id,
                state=OwnershipState.WITH_HUMAN,
                reason=ReconcileReason.ASSIGNED_TO_HUMAN,
                assignee_agent_id=assignee,
            )

        if not assignee and local.is_escalated:
            logger.info(f"Conversation {conversation_id} was reopened (unassigned), returning to automation")
            self.store.remove(conversation_id)
            return Reconciliation(
                conversation_id=conversation_id,
                state=OwnershipState.WITH_AUTOMATION,
                reason=ReconcileReason.REOPENED,
            )

        if assignee and local.is_escalated:
            logger.info(f"Conversation {conversation_id} is assigned to the bot but marked escalated, clearing flag")
            self.store.set_state(conversation_id, OwnershipState.WITH_AUTOMATION)
            return Reconciliation(
                conversation_id=conversation_id,
                state=OwnershipState.WITH_AUTOMATION,
                reason=ReconcileReason.SELF_HEALED,
                assignee_agent_id=assignee,
            )

        return Reconciliation(
            conversation_id=conversation_id,
            state=local.ownership_state,
            reason=ReconcileReason.LOCAL_STATE,
            assignee_agent_id=assignee,
        )
