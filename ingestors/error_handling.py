"""
Error types and error handling for health data operations.
"""

import logging
import time
import traceback
from collections.abc import Callable
from enum import Enum
from functools import wraps
from typing import Any

import requests

from metrics.collectors import metrics

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Types of errors that can occur."""

    API_ERROR = "api_error"
    AUTH_ERROR = "auth_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_ERROR = "unknown_error"


class HealthDataError(Exception):
    """Base exception for health data operations."""

    def __init__(self, message: str, error_type: ErrorType, provider: str | None = None, **kwargs):
        super().__init__(message)
        self.error_type = error_type
        self.provider = provider
        self.details = kwargs


class InvalidKindError(HealthDataError):
    """Raised when a record kind is not one we know how to read."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorType.VALIDATION_ERROR, **kwargs)


class FHIRTransactionError(HealthDataError):
    """Raised when the FHIR server rejects a transaction bundle."""

    def __init__(self, message: str, error_type: ErrorType = ErrorType.API_ERROR, **kwargs):
        super().__init__(message, error_type, provider="fhir", **kwargs)


def error_handler(provider: str, operation: str):
    """
    Decorator for error handling with metrics and logging.

    Failures are logged with context, counted, and re-raised as HealthDataError.

    Args:
        provider: Provider name (e.g., 'health_connect')
        operation: Operation name (e.g., 'read_records')
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start_time = time.time()

            try:
                result = func(*args, **kwargs)

                duration = time.time() - start_time
                metrics.record_sync_operation(
                    provider=provider, operation_type=operation, status="success", duration=duration
                )

                return result

            except Exception as e:
                duration = time.time() - start_time
                error_message = str(e)
                error_type = e.error_type if isinstance(e, HealthDataError) else classify_error(e)

                metrics.record_sync_operation(
                    provider=provider, operation_type=operation, status="error", duration=duration
                )
                metrics.record_provider_api_error(provider, error_type.value)

                logger.error(
                    "Operation failed",
                    extra={
                        "provider": provider,
                        "operation": operation,
                        "error_type": error_type.value,
                        "error_message": error_message,
                        "duration": duration,
                        "traceback": traceback.format_exc(),
                    },
                )

                if isinstance(e, HealthDataError):
                    raise

                if error_type == ErrorType.RATE_LIMIT_ERROR:
                    metrics.record_rate_limit(provider)
                    raise HealthDataError(
                        f"Rate limit exceeded for {provider}", error_type, provider=provider, original_error=e
                    ) from e
                elif error_type == ErrorType.AUTH_ERROR:
                    raise HealthDataError(
                        f"Authentication failed for {provider}", error_type, provider=provider, original_error=e
                    ) from e
                else:
                    raise HealthDataError(
                        f"Operation {operation} failed for {provider}: {error_message}",
                        error_type,
                        provider=provider,
                        original_error=e,
                    ) from e

        return wrapper

    return decorator


def classify_error(exception: Exception) -> ErrorType:
    """Classify exception into error types."""
    if isinstance(exception, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return ErrorType.NETWORK_ERROR

    if isinstance(exception, requests.exceptions.HTTPError) and exception.response is not None:
        status_code = exception.response.status_code
        if status_code == 429:
            return ErrorType.RATE_LIMIT_ERROR
        if status_code in (401, 403):
            return ErrorType.AUTH_ERROR
        if status_code in (400, 422):
            return ErrorType.VALIDATION_ERROR
        if status_code >= 500:
            return ErrorType.API_ERROR

    error_str = str(exception).lower()

    # Rate limit errors
    if "rate limit" in error_str or "429" in error_str or "too many requests" in error_str:
        return ErrorType.RATE_LIMIT_ERROR

    # Authentication errors
    if any(auth_term in error_str for auth_term in ["401", "unauthorized", "forbidden", "403"]):
        return ErrorType.AUTH_ERROR

    # Network errors
    if any(net_term in error_str for net_term in ["timeout", "connection", "network", "dns", "502", "503", "504"]):
        return ErrorType.NETWORK_ERROR

    # Validation errors
    if any(val_term in error_str for val_term in ["validation", "invalid", "bad request", "400"]):
        return ErrorType.VALIDATION_ERROR

    # API errors
    if any(api_term in error_str for api_term in ["api", "500", "internal server error"]):
        return ErrorType.API_ERROR

    return ErrorType.UNKNOWN_ERROR
