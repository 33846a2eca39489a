"""
Shared route dependencies: caller identity and domain error translation.

Authentication lives outside this service; the upstream gateway forwards the
authenticated user through the X-User-Id / X-User-Role headers.
"""

from typing import Optional

from fastapi import Header, HTTPException
from pydantic import BaseModel

from draw_engine.services.errors import DrawEngineError, DrawPermissionError, NotFoundError


class Caller(BaseModel):
    user_id: str
    role: Optional[str] = None


def get_caller(
    x_user_id: str = Header(..., description="Authenticated user id"),
    x_user_role: Optional[str] = Header(None, description="Authenticated user role (e.g. ORGANIZER, ADMIN)"),
) -> Caller:
    return Caller(user_id=x_user_id, role=x_user_role)


def http_error(exc: DrawEngineError) -> HTTPException:
    """Map a domain error onto the matching HTTP status."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DrawPermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
