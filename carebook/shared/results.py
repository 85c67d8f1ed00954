"""Uniform action result shared by every booking and schedule action"""

import logging
from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import BookingError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An unexpected error occurred"


class ActionResult(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return self.success


def success_result(data: Any = None) -> ActionResult:
    return ActionResult(success=True, data=data)


def error_result(error: BookingError) -> ActionResult:
    return ActionResult(
        success=False,
        error=error.message,
        code=error.code,
        status_code=error.status_code,
    )


def handle_action_error(exc: Exception, context: str) -> ActionResult:
    """Turn any exception raised inside an action into a failed result.

    Known booking errors keep their message. Anything else is logged with
    its traceback and reported generically.
    """
    if isinstance(exc, BookingError):
        logger.warning(f"⚠️ [{context}] {exc.code}: {exc.message}")
        return error_result(exc)

    logger.exception(f"❌ [{context}] Unexpected error: {exc}")
    return ActionResult(
        success=False,
        error=INTERNAL_ERROR_MESSAGE,
        code="internal_error",
        status_code=500,
    )


def to_response(result: ActionResult) -> JSONResponse:
    """Serialize a result for the HTTP layer"""
    body = result.model_dump(exclude={"status_code"}, exclude_none=True, mode="json")
    return JSONResponse(status_code=result.status_code, content=body)
