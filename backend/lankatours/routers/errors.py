from fastapi import HTTPException

from lankatours.services.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateReviewError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
)


def raise_http_error(exc: MarketplaceError) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AuthorizationError):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, (ConflictError, InvalidTransitionError, DuplicateReviewError)):
        raise HTTPException(status_code=409, detail=str(exc))
    raise HTTPException(status_code=400, detail=str(exc))
