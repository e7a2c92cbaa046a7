"""
Relay error to HTTP status mapping shared by the routers.
"""

import logging

from fastapi import HTTPException

from ..core.execution.errors import (
    InfrastructureError,
    PostSubmissionPersistenceError,
    RelayError,
    SponsorshipError,
    ValidationError,
    WalletNotFoundError,
)

logger = logging.getLogger(__name__)


def to_http_exception(exc: RelayError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, WalletNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, SponsorshipError):
        return HTTPException(
            status_code=402,
            detail={"error": "sponsorship_denied", "message": str(exc)},
        )
    if isinstance(exc, InfrastructureError):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, PostSubmissionPersistenceError):
        logger.error(f"Submitted operation left untracked: {exc.user_op_hash}")
        return HTTPException(
            status_code=500,
            detail={
                "error": "post_submission_persistence_failed",
                "message": str(exc),
                "userOpHash": exc.user_op_hash,
            },
        )
    logger.error(f"Unhandled relay error: {exc}")
    return HTTPException(status_code=500, detail=str(exc))
