import uuid

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, EmailStr
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_current_user, get_db
from tradesfinder.common.enums import UserRole
from tradesfinder.common.exceptions import AuthenticationRequiredError, AuthorizationError, ConflictError
from tradesfinder.common.security import create_access_token, get_password_hash, verify_password
from tradesfinder.config import settings
from tradesfinder.core.profiles.service import ProfileService
from tradesfinder.db.models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])

profiles = ProfileService()


# ---------- Schemas ----------


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str
    phone: str | None = None


class TradespersonRegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    business_name: str
    phone: str
    city: str
    postcode: str
    coverage_radius: int | None = None
    selected_trades: list[uuid.UUID] = []


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    phone: str | None
    role: str
    is_active: bool

    model_config = {"from_attributes": True}


class ProfileSummary(BaseModel):
    id: uuid.UUID
    business_name: str
    slug: str


class TradespersonRegisterResponse(BaseModel):
    user: UserResponse
    profile: ProfileSummary


# ---------- Endpoints ----------


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    email = body.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise ConflictError("An account with this email already exists")

    user = User(
        email=email,
        hashed_password=get_password_hash(body.password),
        name=body.name,
        phone=body.phone,
        role=UserRole.CUSTOMER.value,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


@router.post("/register/tradesperson", response_model=TradespersonRegisterResponse, status_code=201)
async def register_tradesperson(body: TradespersonRegisterRequest, db: AsyncSession = Depends(get_db)):
    user, profile = await profiles.register_tradesperson(
        db,
        name=body.name,
        email=body.email,
        password=body.password,
        business_name=body.business_name,
        phone=body.phone,
        city=body.city,
        postcode=body.postcode,
        trade_ids=body.selected_trades,
        coverage_radius=body.coverage_radius,
    )
    return TradespersonRegisterResponse(
        user=UserResponse.model_validate(user),
        profile=ProfileSummary(id=profile.id, business_name=profile.business_name, slug=profile.slug),
    )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(User).where(User.email == body.email.lower(), User.is_deleted.is_(False))
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.hashed_password):
        raise AuthenticationRequiredError("Invalid email or password")

    if not user.is_active:
        raise AuthorizationError("Account is inactive")

    access_token = create_access_token({"sub": str(user.id), "role": user.role})
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=settings.APP_ENV == "production",
    )
    return TokenResponse(access_token=access_token)


@router.post("/logout", status_code=204)
async def logout(response: Response):
    response.delete_cookie(settings.AUTH_COOKIE_NAME)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user
