"""
app/api/deps.py

Purpose: Request dependencies shared by the routers

- Caller identity from the X-User-ID header set by the auth gateway
- Current session token from the Authorization header
- Admin role check
- Client IP resolution
"""

from typing import Optional

from fastapi import Depends, Header, Query, Request

from app.services import user_service
from app.core.exceptions import AuthenticationError, PermissionDeniedError
from app.core.logging import get_logger
from app.models.user import UserRole
from utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from utils.device_utils import get_client_ip

logger = get_logger(__name__)


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("Missing X-User-ID header")
    return x_user_id.strip()


async def get_current_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """Bearer token of the calling session, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def require_admin(user_id: str = Depends(get_current_user_id)) -> str:
    role = await user_service.get_user_role(user_id)
    if role != UserRole.ADMIN.value:
        logger.warning("Admin route denied", extra={"user_id": user_id, "role": role})
        raise PermissionDeniedError("Admin role required")
    return user_id


def client_ip(request: Request) -> str:
    return get_client_ip(request)


class Pagination:
    """Query parameters `page` and `limit` for list endpoints."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    ):
        self.page = page
        self.limit = limit
