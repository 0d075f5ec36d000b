"""
Cutover Monitor API Dependencies

Dependency injection for auth and the lifecycle controller.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import get_settings
from cutover.controller import (
    CutoverBusy,
    CutoverConflict,
    CutoverController,
    CutoverError,
    CutoverNotConfigured,
    CutoverNotFound,
    InvalidCutoverConfig,
)

settings = get_settings()
security = HTTPBearer(auto_error=not settings.debug)

_ERROR_STATUS = {
    CutoverNotFound: status.HTTP_404_NOT_FOUND,
    CutoverNotConfigured: status.HTTP_409_CONFLICT,
    CutoverBusy: status.HTTP_409_CONFLICT,
    CutoverConflict: status.HTTP_409_CONFLICT,
    InvalidCutoverConfig: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Decode JWT and return user payload. Bypassed in debug mode."""
    if settings.debug:
        return {"sub": "dev-operator", "email": "dev@cutover-monitor.local"}

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    from core.security import decode_access_token

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return payload


def get_controller(request: Request) -> CutoverController:
    """The process-wide controller built at startup."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cutover controller not initialised",
        )
    return controller


def cutover_http_error(exc: CutoverError) -> HTTPException:
    code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail=str(exc))
