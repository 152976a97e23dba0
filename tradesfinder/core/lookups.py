import uuid
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.exceptions import AuthenticationRequiredError, NotFoundError
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.db.base import BaseModel
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.db.models.user import User

M = TypeVar("M", bound=BaseModel)


async def get_or_404(db: AsyncSession, model: type[M], entity_id: uuid.UUID, label: str) -> M:
    result = await db.execute(
        select(model).where(model.id == entity_id, model.is_deleted.is_(False))
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFoundError(label)
    return obj


async def get_profile_for_user(db: AsyncSession, user_id: uuid.UUID | None) -> TradesProfile | None:
    if user_id is None:
        return None
    result = await db.execute(
        select(TradesProfile).where(
            TradesProfile.user_id == user_id,
            TradesProfile.is_deleted.is_(False),
        )
    )
    return result.scalar_one_or_none()


async def require_own_profile(db: AsyncSession, ctx: AuthContext) -> TradesProfile:
    """The caller's trades profile; tradesperson-only endpoints start here."""
    if ctx.is_anonymous:
        raise AuthenticationRequiredError()
    profile = await get_profile_for_user(db, ctx.user_id)
    if not profile:
        raise NotFoundError("Trades profile")
    return profile


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()
