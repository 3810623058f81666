# Utils package

from .error_handling import (
    ErrorResponse,
    ExternalReadFailure,
    ExternalWriteFailure,
    GenerationError,
    GenerationFailed,
    GenerationTimeout,
    PlatformAPIError,
    handle_api_errors,
    log_operation_error,
)

__all__ = [
    "handle_api_errors",
    "log_operation_error",
    "ErrorResponse",
    "PlatformAPIError",
    "ExternalReadFailure",
    "ExternalWriteFailure",
    "GenerationError",
    "GenerationFailed",
    "GenerationTimeout",
]
