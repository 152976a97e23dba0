import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tradesfinder.common.enums import QuoteStatus
from tradesfinder.db.base import BaseModel, JSONType


class QuoteRequest(BaseModel):
    __tablename__ = "quote_requests"

    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trades_profiles.id"), nullable=False, index=True
    )
    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    trade_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    postcode: Mapped[str] = mapped_column(String(16), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    timeframe: Mapped[str | None] = mapped_column(String(20), nullable=True)
    preferred_dates: Mapped[str | None] = mapped_column(String(255), nullable=True)
    budget_range: Mapped[str | None] = mapped_column(String(50), nullable=True)
    images: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    status: Mapped[QuoteStatus] = mapped_column(
        String(20), nullable=False, default=QuoteStatus.PENDING.value
    )
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
