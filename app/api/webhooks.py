import json
import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, FastAPI, Request
from pydantic import BaseModel, Field

from app import config
from app.api.assistant import build_generative_backend
from app.api.freshchat import freshchat
from app.core import BrokerSettings, OwnershipStore, WebhookDispatcher, classify
from app.schemas import CanonicalEvent, RespondOutcome
from app.utils import handle_api_errors, log_operation_error
from app.utils.sentry import conversation_scope
from app.utils.webhook_history import WebhookHistory

logger = logging.getLogger(__name__)

router = APIRouter()

settings = BrokerSettings.from_config()
store = OwnershipStore(max_records=config.MAX_TRACKED_CONVERSATIONS)
generator = build_generative_backend()
dispatcher = WebhookDispatcher(store, freshchat, generator, settings)
webhook_history = WebhookHistory(max_size=config.MAX_STORED_WEBHOOKS)


class TestMessageRequest(BaseModel):
    conversation_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


async def process_event(event: CanonicalEvent) -> None:
    """Background unit of work for one webhook. Failures end here; the webhook was already acknowledged."""
    with conversation_scope(event.conversation_id, event.action):
        try:
            await dispatcher.dispatch(event)
        except Exception as e:
            log_operation_error("process webhook", e, conversation_id=event.conversation_id, action=event.action)


@router.post("/freshchat-webhook")
async def freshchat_webhook(request: Request, background_tasks: BackgroundTasks) -> Dict[str, Any]:
    """Acknowledge immediately and process the event in the background."""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Received webhook with unparseable body: {e}")
        return {"success": True}

    webhook_history.record(payload)
    event = classify(payload)
    logger.info(
        f"Received webhook: action={event.action} kind={event.action_kind.value} "
        f"actor={event.actor_kind.value} conversation={event.conversation_id}"
    )
    logger.debug(f"Webhook payload: {payload}")

    background_tasks.add_task(process_event, event)
    return {"success": True}


@router.get("/debug/webhooks")
async def debug_webhooks() -> Dict[str, Any]:
    """Most recent raw webhook bodies, newest first."""
    return {"count": len(webhook_history), "webhooks": webhook_history.entries()}


@router.get("/debug/state")
async def debug_state() -> Dict[str, Any]:
    return {
        "escalated_conversations": store.escalated_ids(),
        "session_handles": store.session_handles(),
        "tracked_conversations": len(store),
        "bot_agent_id": settings.automation_agent_id or "NOT SET",
        "human_agent_id": settings.human_agent_id or "NOT SET",
        "generation_backend": generator.name,
    }


@router.get("/escalated")
async def escalated_conversations() -> Dict[str, Any]:
    escalated = store.escalated_ids()
    return {
        "escalated": escalated,
        "count": len(escalated),
        "active_sessions": len(store.session_handles()),
    }


@router.post("/force-return-to-bot/{conversation_id}")
@handle_api_errors("force return to bot")
async def force_return_to_bot(conversation_id: str) -> Dict[str, Any]:
    """Drop local human ownership, reassign to the bot and greet the customer."""
    result = await dispatcher.force_return(conversation_id)
    return {"success": True, "conversation_id": conversation_id, **result}


@router.post("/return-to-bot/{conversation_id}")
@handle_api_errors("return to bot")
async def return_to_bot(conversation_id: str, send_message: bool = True) -> Dict[str, Any]:
    success = await dispatcher.return_to_bot(conversation_id, send_message=send_message)
    return {
        "success": success,
        "conversation_id": conversation_id,
        "message": "Returned to bot" if success else "FRESHCHAT_BOT_AGENT_ID is not configured",
    }


@router.post("/reset-escalation/{conversation_id}")
@handle_api_errors("reset escalation")
async def reset_escalation(conversation_id: str) -> Dict[str, Any]:
    """Forget everything tracked for the conversation, including its assistant session."""
    was_tracked = await dispatcher.reset(conversation_id)
    return {"success": True, "conversation_id": conversation_id, "was_tracked": was_tracked}


@router.post("/test-message")
@handle_api_errors("test message")
async def test_message(request: TestMessageRequest) -> RespondOutcome:
    """Run the respond pipeline synchronously, as if the customer had sent ``message``."""
    return await dispatcher.respond(request.conversation_id, request.message)


def log_config_check() -> None:
    logger.info("=" * 60)
    logger.info(f"{config.SERVICE_NAME} v{config.SERVICE_VERSION}")
    logger.info(f"FRESHCHAT_API_URL: {config.FRESHCHAT_API_URL}")
    logger.info(f"FRESHCHAT_API_KEY: {'set' if config.FRESHCHAT_API_KEY else 'MISSING'}")
    logger.info(f"GENERATION_BACKEND: {generator.name}")
    if generator.name == "openai_assistant":
        logger.info(f"OPENAI_API_KEY: {'set' if config.OPENAI_API_KEY else 'MISSING'}")
        logger.info(f"ASSISTANT_ID: {config.ASSISTANT_ID or 'MISSING'}")
    else:
        logger.info(f"DIFY_API_KEY: {'set' if config.DIFY_API_KEY else 'MISSING'}")
    logger.info(f"FRESHCHAT_BOT_AGENT_ID: {settings.automation_agent_id or 'NOT SET'}")
    logger.info(f"HUMAN_AGENT_ID: {settings.human_agent_id or 'NOT SET'}")
    logger.info(
        f"Phrases: {len(settings.escalation_phrases)} escalation, {len(settings.resolution_phrases)} resolution"
    )
    logger.info("=" * 60)

    if not settings.automation_agent_id:
        logger.warning("FRESHCHAT_BOT_AGENT_ID not set: auto-assign and return-to-bot are disabled")
    if not settings.human_agent_id:
        logger.warning("HUMAN_AGENT_ID not set: escalation is disabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events manager"""
    log_config_check()
    logger.info(f"Application startup at {datetime.now(UTC).isoformat()}")

    yield

    logger.info(f"Application shutdown: dropping {len(store)} tracked conversations")
    store.clear()
