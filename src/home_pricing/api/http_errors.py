"""
Maps pricing core errors to HTTP responses.
"""
from fastapi import HTTPException

from ..engine.errors import (
    CascadeError,
    ConcurrentPromotionError,
    ConfigurationLocked,
    NoBasePackage,
    NotFoundError,
    PricingError,
    ValidationError,
)

CONFLICT_ERRORS = (NoBasePackage, CascadeError, ConcurrentPromotionError, ConfigurationLocked)


def http_error(error: PricingError) -> HTTPException:
    """Build the HTTPException for a typed pricing error."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail={"errors": error.errors})
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, CONFLICT_ERRORS):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
