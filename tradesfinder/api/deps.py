import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import UserRole
from tradesfinder.common.exceptions import AuthenticationRequiredError, AuthorizationError
from tradesfinder.common.security import decode_token
from tradesfinder.config import settings
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.access.gate import require_role as check_role
from tradesfinder.db.models.user import User
from tradesfinder.db.session import async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _token_from(request: Request, authorization: str | None) -> str | None:
    if authorization:
        if not authorization.startswith("Bearer "):
            raise AuthenticationRequiredError("Invalid authorization header format")
        return authorization[len("Bearer "):]
    # Page routes authenticate with the cookie set at login
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


async def get_optional_user(
    request: Request,
    authorization: str | None = Header(None, description="Bearer <token>"),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    token = _token_from(request, authorization)
    if not token:
        return None

    try:
        payload = decode_token(token)
    except ValueError:
        raise AuthenticationRequiredError("Invalid or expired token")

    if payload.get("type") != "access":
        raise AuthenticationRequiredError("Invalid token type")

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise AuthenticationRequiredError("Invalid token payload")

    result = await db.execute(select(User).where(User.id == user_id, User.is_deleted.is_(False)))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationRequiredError("Invalid token payload")
    if not user.is_active:
        raise AuthorizationError("User account is inactive")

    return user


async def get_auth_context(user: User | None = Depends(get_optional_user)) -> AuthContext:
    if user is None:
        return AuthContext.anonymous()
    return AuthContext(user_id=user.id, role=UserRole(user.role))


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise AuthenticationRequiredError()
    return user


def require_role(*roles: UserRole):
    async def role_checker(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        check_role(ctx, *roles)
        return ctx

    return role_checker
