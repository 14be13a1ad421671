"""Shared utilities for API route handlers.

Maps engine exceptions to HTTP status codes and builds rollback responses.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from temporal_config import exceptions
from temporal_config.exceptions import (
    ConflictError,
    NotFoundError,
    PartialBulkFailure,
    TemporalConfigError,
    ValidationError,
)
from temporal_config.models.results import RollbackResult

logger = logging.getLogger(__name__)


def status_for(error_type: type[TemporalConfigError]) -> int:
    """HTTP status code for an engine error class."""
    if issubclass(error_type, NotFoundError):
        return 404
    if issubclass(error_type, ValidationError):
        return 422
    if issubclass(error_type, (ConflictError, PartialBulkFailure)):
        return 409
    return 500


def handle_route_errors(operation_name: str) -> Callable:
    """Decorator that maps engine errors raised by a route to HTTP errors.

    ``HTTPException`` raised inside the handler is re-raised untouched.

    Args:
        operation_name: Human-readable label for log messages
            (e.g. ``"set setting"``).
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except TemporalConfigError as e:
                status = status_for(type(e))
                if status >= 500:
                    logger.error(f"Failed to {operation_name}: {e}")
                else:
                    logger.info(f"Rejected {operation_name}: {e}")
                raise HTTPException(status_code=status, detail=e.to_details()) from e

        return wrapper

    return decorator


def rollback_response(result: RollbackResult) -> JSONResponse:
    """JSON response for a rollback/restore result.

    Successful results are 200. Failed ones carry the status of the error
    named in ``error_details``.
    """
    status = 200
    if not result["success"]:
        type_name = result.get("error_details", {}).get("type", "")
        error_type = getattr(exceptions, type_name, None)
        if isinstance(error_type, type) and issubclass(error_type, TemporalConfigError):
            status = status_for(error_type)
        else:
            status = 500
    return JSONResponse(status_code=status, content=dict(result))
