from collections.abc import Callable
from datetime import datetime

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from carebook.core.db import get_session
from carebook.core.security import decode_access_token

security = HTTPBearer(auto_error=False)

Clock = Callable[[], datetime]

__all__ = ["Clock", "get_clock", "get_current_patient_id", "get_session"]


def get_clock() -> Clock:
    """Source of "now" for scheduling decisions; overridden in tests."""
    return datetime.now


async def get_current_patient_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    patient_id = decode_access_token(credentials.credentials)
    if not patient_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return patient_id
