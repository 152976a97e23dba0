import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradesfinder.common.enums import SubscriptionTier
from tradesfinder.db.base import Base, BaseModel, JSONType

profile_trades = Table(
    "profile_trades",
    Base.metadata,
    Column("profile_id", Uuid(as_uuid=True), ForeignKey("trades_profiles.id"), primary_key=True),
    Column("trade_id", Uuid(as_uuid=True), ForeignKey("trades.id"), primary_key=True),
)


class Trade(BaseModel):
    __tablename__ = "trades"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trades.id"), nullable=True, index=True
    )


class TradesProfile(BaseModel):
    __tablename__ = "trades_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), unique=True, nullable=False, index=True
    )
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(255), nullable=True)
    postcode: Mapped[str | None] = mapped_column(String(16), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    coverage_radius: Mapped[int] = mapped_column(Integer, default=25, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    subscription_tier: Mapped[SubscriptionTier] = mapped_column(
        String(20), nullable=False, default=SubscriptionTier.FREE.value
    )
    subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Derived from approved reviews / answered quotes
    average_rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    response_rate: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Relationships
    user = relationship("User", back_populates="profile")
    trades = relationship("Trade", secondary=profile_trades)
    portfolio_items = relationship("PortfolioItem", back_populates="profile")


class PortfolioItem(BaseModel):
    __tablename__ = "portfolio_items"

    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trades_profiles.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    images: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    profile = relationship("TradesProfile", back_populates="portfolio_items")
