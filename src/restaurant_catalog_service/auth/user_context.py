"""FastAPI dependencies resolving the caller's identity.

The API gateway authenticates requests and forwards the caller as
``X-User-Id``, ``X-User-Role`` and ``X-User-Email`` headers. For restaurant
callers the user id is the restaurant id.
"""

from collections.abc import Callable
from enum import Enum
from typing import Annotated

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel


class UserRole(str, Enum):
    """Roles that may call this service."""

    CUSTOMER = "customer"
    RESTAURANT = "restaurant"


class UserContext(BaseModel):
    """Authenticated caller."""

    id: str
    role: UserRole
    email: str | None = None


def get_user_context(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
    x_user_email: Annotated[str | None, Header()] = None,
) -> UserContext:
    """FastAPI dependency building the caller from the identity headers.

    Returns:
        UserContext: The caller

    Raises:
        HTTPException: 401 if the identity headers are missing, 403 if the role is unknown
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing user identity")

    try:
        role = UserRole(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(status_code=403, detail="Forbidden: Insufficient permissions") from None

    return UserContext(id=x_user_id, role=role, email=x_user_email)


def require_roles(*roles: UserRole) -> Callable[[UserContext], UserContext]:
    """Build a dependency that admits only callers with one of ``roles``.

    Args:
        roles: Allowed roles

    Returns:
        A FastAPI dependency returning the caller's UserContext
    """
    allowed = frozenset(roles)

    def dependency(user: Annotated[UserContext, Depends(get_user_context)]) -> UserContext:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden: Insufficient permissions")
        return user

    return dependency


require_customer = require_roles(UserRole.CUSTOMER)
require_restaurant = require_roles(UserRole.RESTAURANT)
require_any_user = require_roles(UserRole.CUSTOMER, UserRole.RESTAURANT)
