"""Generative-response backends: OpenAI Assistants (threads/runs) and Dify chat apps."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from openai import APIStatusError, APITimeoutError, AsyncOpenAI, NotFoundError, OpenAIError

from app import config
from app.schemas import DifyResponse, GenerationResult
from app.utils import GenerationError, GenerationFailed, GenerationTimeout

logger = logging.getLogger(__name__)

# Use timeout constants from config
HTTPX_TIMEOUT = httpx.Timeout(
    connect=config.HTTPX_CONNECT_TIMEOUT,
    read=config.HTTPX_READ_TIMEOUT,
    write=config.HTTPX_WRITE_TIMEOUT,
    pool=config.HTTPX_POOL_TIMEOUT,
)

TERMINAL_RUN_FAILURES = ("failed", "expired", "cancelled", "incomplete")


class GenerativeBackend(ABC):
    """Produces a reply for a user message within a backend-side session."""

    name: str = "generative"

    @abstractmethod
    async def respond(self, session_handle: Optional[str], user_text: str) -> GenerationResult:
        """Return the reply text and the session handle to use for the next turn.

        Raises GenerationFailed on backend errors and GenerationTimeout when no reply
        arrived within the poll budget.
        """

    @abstractmethod
    async def check_connection(self) -> None:
        """Raise if the backend is unreachable or rejects our credentials."""


class AssistantHandler(GenerativeBackend):
    """OpenAI Assistants API client. The session handle is the thread ID."""

    name = "openai_assistant"

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        assistant_id: str | None = None,
        poll_interval: float | None = None,
        max_poll_attempts: int | None = None,
        organization: str | None = None,
        project: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.api_url = (api_url or config.OPENAI_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.assistant_id = assistant_id or config.ASSISTANT_ID
        self.poll_interval = config.ASSISTANT_POLL_INTERVAL if poll_interval is None else poll_interval
        self.max_poll_attempts = max_poll_attempts or config.ASSISTANT_MAX_POLL_ATTEMPTS
        self.organization = organization or config.OPENAI_ORG_ID
        self.project = project or config.OPENAI_PROJECT_ID
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # Created on first use so the service can start without an API key
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.api_url,
                organization=self.organization,
                project=self.project,
                timeout=HTTPX_TIMEOUT,
                max_retries=config.OPENAI_MAX_RETRIES,
            )
        return self._client

    async def respond(self, session_handle: Optional[str], user_text: str) -> GenerationResult:
        logger.info(f"Getting assistant response for: {user_text[:100]!r}")
        thread_id = session_handle
        try:
            if not thread_id:
                thread_id = await self._create_thread()
            else:
                logger.info(f"Using existing thread: {thread_id}")

            try:
                await self.client.beta.threads.messages.create(thread_id=thread_id, role="user", content=user_text)
            except NotFoundError:
                if not session_handle:
                    raise
                logger.warning(f"Thread {thread_id} no longer exists, starting a new one")
                thread_id = await self._create_thread()
                await self.client.beta.threads.messages.create(thread_id=thread_id, role="user", content=user_text)

            run = await self.client.beta.threads.runs.create(thread_id=thread_id, assistant_id=self.assistant_id)
            await self._wait_for_run(thread_id, run)
            reply = await self._latest_reply(thread_id)

        except GenerationError:
            raise
        except APITimeoutError as e:
            raise GenerationTimeout(f"Assistant request timed out: {e!r}", session_handle=thread_id) from e
        except APIStatusError as e:
            logger.error(f"Assistant API error ({e.status_code}): {e.message}")
            raise GenerationFailed(f"Assistant API returned {e.status_code}", session_handle=thread_id) from e
        except OpenAIError as e:
            raise GenerationFailed(f"Assistant request failed: {e!r}", session_handle=thread_id) from e

        logger.info(f"Assistant said: {reply[:200]}")
        return GenerationResult(reply_text=reply, session_handle=thread_id)

    async def _create_thread(self) -> str:
        thread = await self.client.beta.threads.create()
        logger.info(f"Created new thread: {thread.id}")
        return thread.id

    async def _wait_for_run(self, thread_id: str, run: Any) -> Any:
        """Poll the run until it completes, fails, or the attempt budget runs out."""
        logger.info(f"Waiting for assistant response (run: {run.id})...")
        attempts = 0
        while run.status != "completed" and attempts < self.max_poll_attempts:
            if run.status in TERMINAL_RUN_FAILURES:
                details = run.last_error.message if run.last_error else "no details"
                raise GenerationFailed(f"Assistant run {run.status}: {details}", session_handle=thread_id)
            await asyncio.sleep(self.poll_interval)
            run = await self.client.beta.threads.runs.retrieve(run.id, thread_id=thread_id)
            attempts += 1
            if attempts % 10 == 0:
                logger.info(f"Still waiting... ({attempts} polls, status: {run.status})")

        if run.status != "completed":
            raise GenerationTimeout(
                f"Assistant timeout after {attempts} polls (status: {run.status})", session_handle=thread_id
            )

        logger.info(f"Assistant completed after {attempts} polls")
        return run

    async def _latest_reply(self, thread_id: str) -> str:
        page = await self.client.beta.threads.messages.list(thread_id=thread_id, order="desc", limit=20)
        replies = sorted(
            (message for message in page.data if message.role == "assistant"),
            key=lambda message: message.created_at,
            reverse=True,
        )
        text = _message_text(replies[0]) if replies else None
        if not text or not text.strip():
            raise GenerationFailed("No assistant response found", session_handle=thread_id)
        return text

    async def check_connection(self) -> None:
        await self.client.models.list()


def _message_text(message: Any) -> Optional[str]:
    for part in message.content:
        if part.type == "text" and part.text.value:
            return part.text.value
    return None


class DifyHandler(GenerativeBackend):
    """Dify chat-app client. The session handle is the Dify conversation ID."""

    name = "dify"

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        response_mode: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = (api_url or config.DIFY_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.DIFY_API_KEY
        self.response_mode = response_mode or config.DIFY_RESPONSE_MODE
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=HTTPX_TIMEOUT)

    async def respond(self, session_handle: Optional[str], user_text: str) -> GenerationResult:
        url = f"{self.api_url}/chat-messages"
        data: Dict[str, Any] = {
            "query": user_text,
            "inputs": {},
            "response_mode": self.response_mode,
            "user": "freshchat",
        }
        # Only include conversation_id in the payload if it's already set
        if session_handle:
            data["conversation_id"] = session_handle

        try:
            async with self._client() as client:
                response = await client.post(url, json=data, headers=self.headers)
                if response.status_code == 404 and session_handle:
                    logger.warning(f"Dify conversation {session_handle} not found, starting a new one")
                    data.pop("conversation_id")
                    response = await client.post(url, json=data, headers=self.headers)
                if response.status_code >= 400:
                    logger.error(f"Dify API error response ({response.status_code}): {response.text}")
                response.raise_for_status()
                result = DifyResponse.model_validate(response.json())
        except httpx.TimeoutException as e:
            raise GenerationTimeout(f"Dify request timed out: {e!r}", session_handle=session_handle) from e
        except httpx.HTTPStatusError as e:
            raise GenerationFailed(
                f"Dify API returned {e.response.status_code}", session_handle=session_handle
            ) from e
        except httpx.HTTPError as e:
            raise GenerationFailed(f"Dify request failed: {e!r}", session_handle=session_handle) from e

        if not result.has_valid_answer():
            raise GenerationFailed("Dify returned an empty answer", session_handle=result.conversation_id)
        if not result.conversation_id:
            raise GenerationFailed("Dify response did not include a conversation_id")

        return GenerationResult(reply_text=result.answer, session_handle=result.conversation_id)

    async def check_connection(self) -> None:
        async with self._client() as client:
            response = await client.get(f"{self.api_url}/parameters", headers=self.headers)
            response.raise_for_status()


def build_generative_backend(backend: str | None = None) -> GenerativeBackend:
    backend = backend or config.GENERATION_BACKEND
    if backend == "openai_assistant":
        return AssistantHandler()
    if backend == "dify":
        return DifyHandler()
    raise ValueError(f"Unknown GENERATION_BACKEND {backend!r}, expected one of {config.valid_generation_backends()}")
