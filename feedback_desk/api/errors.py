"""Translate lifecycle errors into HTTP responses."""

from fastapi import HTTPException, status

from ..services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    LifecycleError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

STATUS_CODES: dict[type[LifecycleError], int] = {
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
}


def to_http_exception(error: LifecycleError) -> HTTPException:
    """Map an engine error to the matching HTTPException."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type in type(error).__mro__:
        if error_type in STATUS_CODES:
            status_code = STATUS_CODES[error_type]
            break

    if isinstance(error, ValidationError) and error.fields:
        return HTTPException(
            status_code=status_code,
            detail={"message": str(error), "fields": error.fields},
        )
    return HTTPException(status_code=status_code, detail=str(error))
