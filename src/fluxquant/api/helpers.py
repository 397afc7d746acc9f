"""
API helper utilities for common patterns.

This module provides reusable helpers for:
- Request loading through marshmallow schemas
- Success and error envelopes
- Retrying operations that failed with a retryable error
"""

import logging
from typing import Any, Callable, Dict, Type

from marshmallow import Schema, ValidationError

from fluxquant.exceptions import (
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    QuotaEngineError,
)


logger = logging.getLogger(__name__)


def load_request(schema_cls: Type[Schema], payload) -> Dict[str, Any]:
    """
    Validate and deserialize a request payload.

    Raises:
        InvalidArgumentError: payload is not a mapping or fails validation;
            the marshmallow messages are attached as ``details['errors']``
    """
    if not isinstance(payload, dict):
        raise InvalidArgumentError("Request payload must be a mapping")
    try:
        return schema_cls().load(payload)
    except ValidationError as e:
        fields = ', '.join(sorted(str(k) for k in e.messages)) if isinstance(e.messages, dict) else ''
        raise InvalidArgumentError(f"Invalid request: {fields or e.messages}",
                                   errors=e.messages) from e


def require_actor(actor):
    """External operations always run on behalf of an authenticated principal."""
    if actor is None:
        raise ForbiddenError("An authenticated principal is required")
    return actor


def success_response(data) -> Dict[str, Any]:
    return {'ok': True, 'data': data}


def error_response(error: Exception) -> Dict[str, Any]:
    """
    Build the error envelope for a failed operation.

    Engine errors keep their code and retryable flag; anything else is
    logged with its traceback and reported as an opaque internal error.

    Returns:
        {'ok': False, 'error': {'code', 'message', 'retryable'[, 'details']}}
    """
    if not isinstance(error, QuotaEngineError):
        logger.exception("Unexpected error in quota engine operation", exc_info=error)
        error = InternalError("Internal error")
    return {'ok': False, 'error': error.to_dict()}


def call_with_retry(func: Callable, *args, attempts: int = 3, **kwargs):
    """
    Call ``func`` again when it raises a retryable engine error.

    Only errors flagged retryable (UnavailableError) are retried; the last
    one propagates once attempts are exhausted.

    Usage:
        data = call_with_retry(operations.adjust_pool_quota, session, payload, actor)
    """
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except QuotaEngineError as e:
            if not e.retryable or attempt == attempts:
                raise
            logger.info(f"Retrying {func.__name__} after {e.code} (attempt {attempt}/{attempts})")
