"""API dependencies for authentication and shared services."""

from typing import Annotated, Any, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from cleanbook.core.exceptions import AuthenticationError, AuthorizationError
from cleanbook.core.permissions import Actor, UserRole
from cleanbook.core.security import decode_access_token
from cleanbook.database import get_db
from cleanbook.models.user import User
from cleanbook.services.lifecycle_service import LifecycleEngine
from cleanbook.services.notification_hub import NotificationHub

# Security scheme
security = HTTPBearer()


async def authenticate_token(token: str, db: AsyncSession) -> User:
    """Resolve a bearer token to an active user."""
    claims = decode_access_token(token)
    result = await db.execute(select(User).where(User.id == claims.sub))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    return await authenticate_token(credentials.credentials, db)


async def get_current_actor(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Actor:
    """The (user id, role) pair the lifecycle engine authorizes against."""
    return Actor(user_id=current_user.id, role=UserRole(current_user.role))


def get_notification_hub(conn: HTTPConnection) -> NotificationHub:
    return conn.app.state.notification_hub


def get_lifecycle_engine(request: Request) -> LifecycleEngine:
    return request.app.state.lifecycle_engine


def require_role(*allowed_roles: UserRole) -> Callable[..., Any]:
    """Dependency to require specific roles."""

    async def role_checker(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if actor.role not in allowed_roles:
            raise AuthorizationError(
                f"Role '{actor.role.value}' is not authorized for this action"
            )
        return actor

    return role_checker


# Convenience dependencies
require_admin = require_role(UserRole.ADMIN)
require_cleaner = require_role(UserRole.CLEANER)
require_customer = require_role(UserRole.CUSTOMER)
