"""Boundary between domain errors and HTTP responses"""

import inspect
import logging
import time
from typing import Any, Callable, Optional, Tuple
from fastapi import HTTPException, Request

from village_bank.api.dependencies import get_request_id
from village_bank.domain.exceptions import (
    AuthorizationError,
    DomainException,
    DuplicatePostingError,
    InvalidTransitionError,
    LoanNotFoundError,
    PersistenceError,
    RemoteProcedureError,
    ValidationError,
)
from village_bank.infrastructure.observability.logging import log_transition
from village_bank.infrastructure.observability.metrics import record_transition

logger = logging.getLogger(__name__)

# Checked in order: DuplicatePostingError before its PersistenceError base
ERROR_MAP: Tuple[Tuple[type, int, str], ...] = (
    (ValidationError, 422, "invalid"),
    (AuthorizationError, 403, "unauthorized"),
    (LoanNotFoundError, 404, "not_found"),
    (InvalidTransitionError, 409, "conflict"),
    (DuplicatePostingError, 409, "conflict"),
    (PersistenceError, 503, "failed"),
    (RemoteProcedureError, 502, "failed"),
)


def classify(error: DomainException) -> Tuple[int, str]:
    """HTTP status and metric outcome for a domain error"""
    for error_type, status, outcome in ERROR_MAP:
        if isinstance(error, error_type):
            return status, outcome
    return 400, "failed"


async def guarded(request: Request, action: str, loan_id: Optional[str], operation: Callable[[], Any]) -> Any:
    """
    Run a controller call, translating failures for the client.

    Domain errors keep their message; anything unexpected is logged and
    reported as a generic 500 so the caller never sees internals.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = operation()
        if inspect.isawaitable(result):
            result = await result

    except DomainException as e:
        status, outcome = classify(e)
        record_transition(action, outcome)
        log_transition(request_id, action, loan_id, outcome, (time.time() - start_time) * 1000, str(e))
        if status >= 500:
            logger.error(f"{action} failed: {e}", extra={"request_id": request_id, "loan_id": loan_id})
        raise HTTPException(status_code=status, detail=str(e))

    except Exception as e:
        record_transition(action, "failed")
        logger.error(f"Unexpected error: {e}", extra={"request_id": request_id, "loan_id": loan_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    record_transition(action, "ok")
    log_transition(request_id, action, loan_id, "ok", (time.time() - start_time) * 1000)
    return result
