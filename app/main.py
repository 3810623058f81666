import logging
from typing import Any, Dict

from fastapi import FastAPI

from app import config
from app.api import freshchat, health, webhooks
from app.api.webhooks import lifespan
from app.utils.sentry import init_sentry

# Add before creating FastAPI app
logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

sentry_initialized = init_sentry(with_fastapi=True, with_httpx=True)

if sentry_initialized:
    logging.info("Sentry initialized with FastAPI, HTTPX and logging integrations")

app = FastAPI(
    title=config.SERVICE_NAME,
    version=config.SERVICE_VERSION,
    lifespan=lifespan,
    debug=config.DEBUG == "True",
)

app.include_router(webhooks.router, prefix="/api/v1")
app.include_router(freshchat.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api/v1/health")

if config.OTEL_ENABLED:
    from app.telemetry import setup_telemetry

    setup_telemetry(app)
    logging.info(f"OpenTelemetry tracing enabled, exporting to {config.OTEL_EXPORTER_OTLP_ENDPOINT}")


@app.get("/")
async def root() -> Dict[str, Any]:
    return {
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "status": "running",
        "features": [
            "Ownership reconciliation against Freshchat assignment",
            "Auto-assign unassigned conversations to the bot",
            "Reopen detection after a human closes a conversation",
            "Escalation to a human agent on hand-off replies or failures",
            "Return to bot on agent resolution messages",
            "Image and file acknowledgement without generation",
            "Citation stripping and chat formatting of replies",
        ],
        "endpoints": {
            "webhook": "POST /api/v1/freshchat-webhook",
            "health": "GET /api/v1/health",
            "test_config": "GET /api/v1/health/test-config",
            "debug_state": "GET /api/v1/debug/state",
            "debug_webhooks": "GET /api/v1/debug/webhooks",
            "escalated": "GET /api/v1/escalated",
            "list_agents": "GET /api/v1/list-agents",
            "force_return": "POST /api/v1/force-return-to-bot/{conversation_id}",
            "return_to_bot": "POST /api/v1/return-to-bot/{conversation_id}",
            "reset_escalation": "POST /api/v1/reset-escalation/{conversation_id}",
            "test_message": "POST /api/v1/test-message",
        },
    }
