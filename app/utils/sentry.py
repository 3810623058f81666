import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import sentry_sdk
from sentry_sdk.integrations import Integration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from .. import config

# Customer text must not leave the service through error reports
SCRUBBED_REQUEST_PATHS = ("/freshchat-webhook", "/test-message")


def _scrub_message_bodies(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    request = event.get("request") or {}
    if any(str(request.get("url", "")).endswith(path) for path in SCRUBBED_REQUEST_PATHS):
        request.pop("data", None)
    return event


def build_integrations(with_fastapi: bool = True, with_httpx: bool = True) -> List[Integration]:
    # Webhooks are processed after the ack, so logged errors are often the only signal
    integrations: List[Integration] = [
        LoggingIntegration(
            level=None,
            event_level=getattr(logging, config.SENTRY_LOG_LEVEL, logging.WARNING),
        )
    ]

    if with_fastapi:
        # 4xx on the operator endpoints are caller mistakes, not incidents
        server_errors = {*range(500, 600)}
        integrations.append(FastApiIntegration(transaction_style="endpoint", failed_request_status_codes=server_errors))
        integrations.append(StarletteIntegration(transaction_style="endpoint", failed_request_status_codes=server_errors))

    if with_httpx:
        # Freshchat and OpenAI / Dify calls
        integrations.append(HttpxIntegration())

    return integrations


def init_sentry(with_fastapi=True, with_httpx=True, custom_integrations=None):
    """
    Initialize Sentry SDK for the webhook service.

    Args:
        with_fastapi (bool): Include FastAPI and Starlette integrations
        with_httpx (bool): Include HTTPX integration for outgoing platform and generation calls
        custom_integrations (list): Integrations to add next to the logging integration instead of the defaults

    Returns:
        bool: Whether Sentry was initialized
    """
    if not config.SENTRY_DSN:
        logging.warning("Sentry DSN is not set, skipping initialization")
        return False

    if custom_integrations is not None:
        integrations = build_integrations(with_fastapi=False, with_httpx=False) + list(custom_integrations)
    else:
        integrations = build_integrations(with_fastapi=with_fastapi, with_httpx=with_httpx)

    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.SENTRY_ENVIRONMENT,
        release=f"{config.OTEL_SERVICE_NAME}@{config.SERVICE_VERSION}",
        traces_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
        profiles_sample_rate=config.SENTRY_PROFILES_SAMPLE_RATE,
        integrations=integrations,
        before_send=_scrub_message_bodies,
        debug=config.DEBUG == "True",
        attach_stacktrace=config.SENTRY_ATTACH_STACKTRACE,
        send_default_pii=config.SENTRY_SEND_DEFAULT_PII,
        in_app_include=["app"],
    )

    return True


@contextmanager
def conversation_scope(conversation_id: Optional[str], action: Optional[str] = None) -> Iterator[None]:
    """Tag every event raised while processing one webhook with its conversation."""
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("freshchat.conversation_id", conversation_id or "unknown")
        if action:
            scope.set_tag("freshchat.action", action)
        yield
