"""Error taxonomy and the uniform result shape returned by service actions."""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AssessmentAgentError(Exception):
    """Base exception for domain errors."""
    code = "error"
    status_code = 400

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class Unauthenticated(AssessmentAgentError):
    """Authentication required"""
    code = "unauthenticated"
    status_code = 401


class Forbidden(AssessmentAgentError):
    """Insufficient permissions"""
    code = "forbidden"
    status_code = 403


class NotFound(AssessmentAgentError):
    """Resource not found"""
    code = "not_found"
    status_code = 404


class InvalidInput(AssessmentAgentError):
    """Invalid input"""
    code = "invalid_input"
    status_code = 422


class InvalidState(AssessmentAgentError):
    """Operation not allowed in the current state"""
    code = "invalid_state"
    status_code = 409


class ExternalServiceFailure(AssessmentAgentError):
    """External grading service failed"""
    code = "external_service_failure"
    status_code = 502


@dataclass
class ActionResult(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: T = None) -> "ActionResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: AssessmentAgentError) -> "ActionResult[T]":
        return cls(success=False, error=exc.message, code=exc.code)

    def unwrap(self) -> T:
        """Return data or re-raise the failure as its domain exception."""
        if self.success:
            return self.data
        raise _ERRORS_BY_CODE.get(self.code, AssessmentAgentError)(self.error)


_ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (Unauthenticated, Forbidden, NotFound, InvalidInput, InvalidState, ExternalServiceFailure)
}


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


def action(fallback_message: str) -> Callable:
    """Wrap a service operation so it always returns an ActionResult.

    Domain errors become failures carrying their code, pydantic validation
    errors become InvalidInput, anything else is logged and reported with
    ``fallback_message``.
    """
    def decorator(func: Callable[..., Any]) -> Callable[..., ActionResult]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> ActionResult:
            try:
                return ActionResult.ok(func(*args, **kwargs))
            except AssessmentAgentError as e:
                logger.info(f"{func.__name__} rejected: {e.code}: {e.message}")
                return ActionResult.fail(e)
            except ValidationError as e:
                return ActionResult.fail(InvalidInput(_format_validation_error(e)))
            except Exception as e:
                logger.error(f"{func.__name__} failed: {e}", exc_info=True)
                db = next((a for a in args if isinstance(a, Session)), kwargs.get("db"))
                if db is not None:
                    db.rollback()
                return ActionResult(success=False, error=fallback_message, code=AssessmentAgentError.code)
        return wrapper
    return decorator


def raise_for_result(result: ActionResult) -> Any:
    """Return the data of a successful result, else raise the matching HTTPException."""
    if result.success:
        return result.data
    status_code = getattr(_ERRORS_BY_CODE.get(result.code), "status_code", 500)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    raise HTTPException(status_code=status_code, detail=result.error, headers=headers)
