import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, status

from app import config
from app.api import webhooks
from app.api.freshchat import freshchat

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, Any]:
    """Liveness plus a summary of configuration and tracked state."""
    return {
        "status": "healthy",
        "version": config.SERVICE_VERSION,
        "timestamp": time.time(),
        "config": {
            "freshchat_api_url": config.FRESHCHAT_API_URL,
            "bot_agent_id": webhooks.settings.automation_agent_id or "NOT SET",
            "human_agent_id": webhooks.settings.human_agent_id or "NOT SET",
            "generation_backend": webhooks.generator.name,
            "has_freshchat_key": bool(config.FRESHCHAT_API_KEY),
        },
        "escalated_conversations": len(webhooks.store.escalated_ids()),
        "active_sessions": len(webhooks.store.session_handles()),
        "tracked_conversations": len(webhooks.store),
        "webhooks_received": len(webhooks.webhook_history),
    }


@router.get("/test-config")
async def test_config() -> Dict[str, Any]:
    """Check that the Freshchat and generative backend credentials actually work."""
    results: Dict[str, Any] = {}

    try:
        agents = await freshchat.get_agents()
        results["freshchat"] = {"status": "ok", "agents": len(agents)}
    except Exception as e:
        logger.error(f"Freshchat connectivity check failed: {e}")
        results["freshchat"] = {"status": "error", "error": str(e)}

    try:
        await webhooks.generator.check_connection()
        results["generation"] = {"status": "ok", "backend": webhooks.generator.name}
    except Exception as e:
        logger.error(f"Generation backend connectivity check failed: {e}")
        results["generation"] = {"status": "error", "backend": webhooks.generator.name, "error": str(e)}

    results["all_ok"] = all(check["status"] == "ok" for check in results.values())
    return results
