"""
Error types and helpers for consistent error reporting.
"""

import functools
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    error: str
    message: str
    operation: Optional[str] = None
    conversation_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class PlatformAPIError(Exception):
    """A call to the chat platform's conversation API could not be completed."""

    def __init__(
        self,
        message: str,
        operation: str,
        conversation_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.operation = operation
        self.conversation_id = conversation_id
        self.status_code = status_code
        super().__init__(message)


class ExternalReadFailure(PlatformAPIError):
    """Reading conversation state from the platform failed."""


class ExternalWriteFailure(PlatformAPIError):
    """Assigning a conversation or posting a message failed."""


class GenerationError(Exception):
    """Base class for generative-response backend failures."""

    def __init__(self, message: str, session_handle: Optional[str] = None):
        self.message = message
        self.session_handle = session_handle
        super().__init__(message)


class GenerationFailed(GenerationError):
    """The backend returned an error or an unusable reply."""


class GenerationTimeout(GenerationError):
    """The backend did not produce a reply within the poll budget."""


def handle_api_errors(operation_name: str):
    """
    Decorator for consistent error handling across API endpoints.

    Args:
        operation_name: Description of the operation for logging/error messages
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)

            except HTTPException:
                raise

            except ValueError as e:
                logger.error(f"Validation error in {operation_name}: {e}", exc_info=True)
                raise HTTPException(
                    status_code=422,
                    detail=ErrorResponse(
                        error="Validation error", message=str(e), operation=operation_name
                    ).model_dump(exclude_none=True),
                ) from e

            except PlatformAPIError as e:
                logger.error(f"Platform API error in {operation_name}: {e}", exc_info=True)
                raise HTTPException(
                    status_code=502,
                    detail=ErrorResponse(
                        error="Platform API error",
                        message=e.message,
                        operation=operation_name,
                        conversation_id=e.conversation_id,
                        details={"status_code": e.status_code} if e.status_code else None,
                    ).model_dump(exclude_none=True),
                ) from e

            except Exception as e:
                logger.error(f"Unexpected error in {operation_name}: {e}", exc_info=True)
                raise HTTPException(
                    status_code=500,
                    detail=ErrorResponse(
                        error="Internal server error",
                        message=f"Failed to {operation_name.lower()}",
                        operation=operation_name,
                    ).model_dump(exclude_none=True),
                ) from e

        return wrapper

    return decorator


def log_operation_error(operation: str, error: Exception, **context) -> None:
    """Log an error during an operation with full context."""
    logger.error(
        f"Error in {operation}: {str(error)}", extra={**context, "error_type": type(error).__name__}, exc_info=True
    )
