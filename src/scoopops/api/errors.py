"""Translate domain errors into HTTP errors."""

from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import (
    IncompleteDistanceData,
    InvalidBillingCycle,
    InvalidRequest,
    NotFound,
    ScoopOpsError,
    UpstreamProviderError,
)


def to_http_exception(exc: ScoopOpsError) -> HTTPException:
    if isinstance(exc, NotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, InvalidBillingCycle):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, InvalidRequest):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, (IncompleteDistanceData, UpstreamProviderError)):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))
