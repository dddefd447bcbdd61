"""
habitchallenge.api.errors — Service errors → HTTP responses
============================================================

=====================  ======
Error                  Status
=====================  ======
NotFoundError          404
ForbiddenError         403
InvalidStateError      409
ConflictError          409
CapacityExceededError  409
ValidationError        422
=====================  ======
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from habitchallenge.engine import errors

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[errors.ChallengeError], int] = {
    errors.NotFoundError: 404,
    errors.ForbiddenError: 403,
    errors.InvalidStateError: 409,
    errors.ConflictError: 409,
    errors.CapacityExceededError: 409,
    errors.ValidationError: 422,
}


def status_for(exc: errors.ChallengeError) -> int:
    for kind, code in ERROR_STATUS.items():
        if isinstance(exc, kind):
            return code
    return 400


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(errors.ChallengeError)
    async def _challenge_error(request: Request, exc: errors.ChallengeError) -> JSONResponse:
        code = status_for(exc)
        logger.info("%s %s → %d %s: %s", request.method, request.url.path, code,
                    type(exc).__name__, exc)
        return JSONResponse(
            status_code=code,
            content={"detail": str(exc), "error": type(exc).__name__},
        )
