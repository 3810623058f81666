import json
import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "t")


def _phrase_list(name: str, default: List[str]) -> List[str]:
    """Read a JSON array of phrases from the environment, falling back to the built-in list."""
    raw = os.getenv(name)
    if not raw:
        return list(default)
    try:
        phrases = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"{name} is not valid JSON, using built-in phrase list")
        return list(default)
    if not isinstance(phrases, list):
        logger.warning(f"{name} must be a JSON array, using built-in phrase list")
        return list(default)
    return [str(phrase) for phrase in phrases if str(phrase).strip()]


# Core application settings
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEBUG = os.getenv("DEBUG", "False")
SERVICE_NAME = os.getenv("SERVICE_NAME", "Freshchat-OpenAI Integration")
SERVICE_VERSION = "9.4.0"

# Freshchat configuration
FRESHCHAT_API_URL = os.getenv("FRESHCHAT_API_URL", "https://api.freshchat.com/v2")
FRESHCHAT_API_KEY = os.getenv("FRESHCHAT_API_KEY", "")
FRESHCHAT_BOT_AGENT_ID = _optional("FRESHCHAT_BOT_AGENT_ID")
HUMAN_AGENT_ID = _optional("HUMAN_AGENT_ID")
FRESHCHAT_READ_TIMEOUT = float(os.getenv("FRESHCHAT_READ_TIMEOUT", "5.0"))
FRESHCHAT_WRITE_TIMEOUT = float(os.getenv("FRESHCHAT_WRITE_TIMEOUT", "10.0"))

# Generative backend selection: "openai_assistant" or "dify"
GENERATION_BACKEND = os.getenv("GENERATION_BACKEND", "openai_assistant")

# OpenAI Assistant configuration
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_ORG_ID = _optional("OPENAI_ORG_ID")
OPENAI_PROJECT_ID = _optional("OPENAI_PROJECT_ID")
ASSISTANT_ID = os.getenv("ASSISTANT_ID", "")
ASSISTANT_POLL_INTERVAL = float(os.getenv("ASSISTANT_POLL_INTERVAL", "1.0"))
ASSISTANT_MAX_POLL_ATTEMPTS = int(os.getenv("ASSISTANT_MAX_POLL_ATTEMPTS", "60"))
OPENAI_MAX_RETRIES = int(os.getenv("OPENAI_MAX_RETRIES", "2"))

# Dify.ai configuration
DIFY_API_URL = os.getenv("DIFY_API_URL", "https://api.dify.ai/v1")
DIFY_API_KEY = os.getenv("DIFY_API_KEY", "")
DIFY_RESPONSE_MODE = os.getenv("DIFY_RESPONSE_MODE", "blocking")

# HTTPX timeout configuration for the generative backend
HTTPX_CONNECT_TIMEOUT = float(os.getenv("HTTPX_CONNECT_TIMEOUT", "30.0"))
HTTPX_READ_TIMEOUT = float(os.getenv("HTTPX_READ_TIMEOUT", "120.0"))
HTTPX_WRITE_TIMEOUT = float(os.getenv("HTTPX_WRITE_TIMEOUT", "30.0"))
HTTPX_POOL_TIMEOUT = float(os.getenv("HTTPX_POOL_TIMEOUT", "30.0"))

# Ownership state bounds
MAX_TRACKED_CONVERSATIONS = int(os.getenv("MAX_TRACKED_CONVERSATIONS", "10000"))
DEDUPLICATE_MESSAGES = _flag("DEDUPLICATE_MESSAGES", "True")
DEDUP_WINDOW_SIZE = int(os.getenv("DEDUP_WINDOW_SIZE", "1000"))
MAX_STORED_WEBHOOKS = int(os.getenv("MAX_STORED_WEBHOOKS", "50"))

# Sentry configuration
SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))
SENTRY_PROFILES_SAMPLE_RATE = float(os.getenv("SENTRY_PROFILES_SAMPLE_RATE", "0.1"))
SENTRY_LOG_LEVEL = os.getenv("SENTRY_LOG_LEVEL", "WARNING")
SENTRY_ATTACH_STACKTRACE = _flag("SENTRY_ATTACH_STACKTRACE", "True")
SENTRY_SEND_DEFAULT_PII = _flag("SENTRY_SEND_DEFAULT_PII", "False")

# OpenTelemetry configuration
OTEL_ENABLED = _flag("OTEL_ENABLED", "False")
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "freshchat-handoff")
OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://jaeger:4317")

# some hardcoded strings

MEDIA_ACK_MESSAGE = os.getenv(
    "MEDIA_ACK_MESSAGE",
    "I have received your image, but to understand it better, please describe your question in text, "
    "or reply 'Human Representative' to connect with our team.",
)

WELCOME_BACK_MESSAGE = os.getenv(
    "WELCOME_BACK_MESSAGE",
    "I'm back! How can I help you today? 😊",
)

DEFAULT_ESCALATION_PHRASES = [
    "Please allow me to connect you to our manager. The response may take 12 to 24 hours due to the high "
    "volume of chats. Your patience would be highly appreciated.",
    "connecting you with a Human Representative",
    "speak to my Human Representative",
    "talk to my Human Representative",
    "escalate",
    "human agent",
    "real person",
    "allow me to connect with Human Representative",
    "connect you to Human Representative",
    "connect you to our Human Representative",
    "Please allow me to connect you to our Human Representative",
    "I have forwarded your details to our Human Representative",
]

DEFAULT_RESOLUTION_PHRASES = [
    "it seems like you are unavailable at the moment",
    "i am closing the chat for now",
    "looks like you're away at the moment",
    "i'll close this chat for now",
    "closing this conversation",
    "returning to bot",
    "handing back to bot",
    "transferring back",
]

ESCALATION_PHRASES = _phrase_list("ESCALATION_PHRASES", DEFAULT_ESCALATION_PHRASES)
RESOLUTION_PHRASES = _phrase_list("RESOLUTION_PHRASES", DEFAULT_RESOLUTION_PHRASES)


def valid_generation_backends() -> List[str]:
    return ["openai_assistant", "dify"]
