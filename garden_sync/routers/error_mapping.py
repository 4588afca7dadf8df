# garden_sync/routers/error_mapping.py
from fastapi import HTTPException, status

from garden_sync.services.errors import (
    AuthError,
    GardenSyncError,
    NotFoundError,
    ProviderFetchError,
    StaleStateError,
    ValidationError,
)

def to_http_exception(exc: GardenSyncError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, AuthError):
        # the integration has to be reconnected by the user
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, StaleStateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="garden changed concurrently, retry")
    if isinstance(exc, ProviderFetchError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
