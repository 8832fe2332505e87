"""
Error handling utilities for question generation operations.

This module provides custom exceptions and decorators for consistent error handling
across the application.
"""
import asyncio
import logging
import time
import uuid
from typing import Callable, List, Optional, TypeVar, ParamSpec, TYPE_CHECKING
from functools import wraps
from contextvars import ContextVar

from fastapi import HTTPException

from src.core.constants import FEEDBACK_PREVIEW_ISSUES

if TYPE_CHECKING:
    from src.models.question_models import ValidationIssue

logger = logging.getLogger(__name__)

# Context variable for request ID tracking across async contexts
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

# Type variables for generic function signatures
P = ParamSpec('P')
T = TypeVar('T')


# ============================================================================
# Custom Exceptions
# ============================================================================

class QuestionPipelineError(Exception):
    """Base exception for question generation errors."""
    pass


class GeneratorConfigurationError(QuestionPipelineError):
    """Generator not properly configured (e.g. missing credentials). Never retried."""
    pass


class TransientGeneratorError(QuestionPipelineError):
    """Timeout, rate limit or upstream 5xx. Retried with backoff."""
    pass


class GeneratorUnavailableError(QuestionPipelineError):
    """Transient retry budget exhausted."""
    pass


class GeneratorRequestError(QuestionPipelineError):
    """Generator rejected the request (non-retryable 4xx such as 400 or 413)."""
    pass


class MalformedOutputError(QuestionPipelineError):
    """Generator output contains no array-shaped payload."""
    pass


class GenerationExhaustedError(QuestionPipelineError):
    """All semantic attempts failed. Carries the full itemized issue list."""

    def __init__(self, issues: List["ValidationIssue"], attempts: int, preview: int = FEEDBACK_PREVIEW_ISSUES):
        self.issues = list(issues)
        self.attempts = attempts
        shown = "; ".join(issue.describe() for issue in self.issues[:preview])
        more = len(self.issues) - preview
        if more > 0:
            shown += f" (+{more} more)"
        super().__init__(f"generation failed: {shown or 'no issues recorded'}")


# ============================================================================
# Error Handler Decorator
# ============================================================================

def _to_http_exception(
    exc: Exception,
    error_message: str,
    func_name: str,
    request_id: str,
    elapsed: float
) -> HTTPException:
    """Map a pipeline exception onto the HTTP error returned to the caller."""
    headers = {"X-Request-ID": request_id}

    if isinstance(exc, GeneratorConfigurationError):
        logger.error(f"[{request_id}] {error_message} - Configuration error after {elapsed:.2f}s: {exc}")
        return HTTPException(status_code=500, detail=f"Generator configuration error: {exc}", headers=headers)
    if isinstance(exc, GenerationExhaustedError):
        logger.error(f"[{request_id}] {error_message} - {exc.attempts} attempts exhausted after {elapsed:.2f}s")
        return HTTPException(
            status_code=422,
            detail={
                "message": str(exc),
                "attempts": exc.attempts,
                "issues": [issue.to_dict() for issue in exc.issues],
            },
            headers=headers
        )
    if isinstance(exc, GeneratorUnavailableError):
        logger.error(f"[{request_id}] {error_message} - Generator unavailable after {elapsed:.2f}s: {exc}")
        return HTTPException(status_code=503, detail=f"Generator unavailable: {exc}", headers=headers)
    if isinstance(exc, GeneratorRequestError):
        logger.error(f"[{request_id}] {error_message} - Generator rejected the request after {elapsed:.2f}s: {exc}")
        return HTTPException(status_code=502, detail=f"Generator rejected the request: {exc}", headers=headers)
    if isinstance(exc, QuestionPipelineError):
        logger.error(f"[{request_id}] {error_message} - Pipeline error after {elapsed:.2f}s: {exc}")
        return HTTPException(status_code=400, detail=str(exc), headers=headers)
    if isinstance(exc, ValueError):
        logger.error(f"[{request_id}] {error_message} - Invalid value after {elapsed:.2f}s: {exc}")
        return HTTPException(status_code=400, detail=f"Invalid input: {exc}", headers=headers)

    logger.exception(f"[{request_id}] {error_message} - Unexpected error in {func_name} after {elapsed:.2f}s: {exc}")
    return HTTPException(status_code=500, detail=f"{error_message}: {exc}", headers=headers)


def _log_completion(func_name: str, request_id: str, elapsed: float) -> None:
    # Log with warning if response time exceeds threshold
    from src.core.config import settings
    threshold_ms = settings.RESPONSE_TIME_WARNING_THRESHOLD_MS
    elapsed_ms = elapsed * 1000
    if elapsed_ms > threshold_ms:
        logger.warning(
            f"[{request_id}] SLOW RESPONSE: {func_name} took {elapsed:.2f}s "
            f"({elapsed_ms:.0f}ms > {threshold_ms}ms threshold)"
        )
    else:
        logger.info(f"[{request_id}] Completed {func_name} in {elapsed:.2f}s")


def _ensure_request_id() -> str:
    # Generate request ID if not already set
    if not request_id_var.get():
        request_id_var.set(str(uuid.uuid4()))
    return request_id_var.get()


def handle_generation_errors(
    error_message: str = "Operation failed"
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator to handle errors in generation and validation endpoints.

    Automatically converts pipeline errors to appropriate HTTP exceptions
    and logs them. Works with both sync and async functions.

    Args:
        error_message: Custom error message prefix

    Returns:
        Decorated function with error handling

    Example:
        @handle_generation_errors("Failed to generate questions")
        async def generate(request: GenerateQuestionsRequest):
            ...
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            """Async wrapper for error handling with request tracking and timing."""
            request_id = _ensure_request_id()
            start_time = time.time()

            try:
                logger.info(f"[{request_id}] Starting {func.__name__}")
                result = await func(*args, **kwargs)
                _log_completion(func.__name__, request_id, time.time() - start_time)
                return result
            except HTTPException:
                raise
            except Exception as e:
                raise _to_http_exception(e, error_message, func.__name__, request_id, time.time() - start_time)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            """Sync wrapper for error handling with request tracking and timing."""
            request_id = _ensure_request_id()
            start_time = time.time()

            try:
                logger.info(f"[{request_id}] Starting {func.__name__}")
                result = func(*args, **kwargs)
                _log_completion(func.__name__, request_id, time.time() - start_time)
                return result
            except HTTPException:
                raise
            except Exception as e:
                raise _to_http_exception(e, error_message, func.__name__, request_id, time.time() - start_time)

        # Return appropriate wrapper based on function type
        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        else:
            return sync_wrapper  # type: ignore

    return decorator
