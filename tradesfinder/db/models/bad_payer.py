import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradesfinder.common.enums import BadPayerStatus, DisputeStatus
from tradesfinder.db.base import BaseModel


class BadPayerReport(BaseModel):
    __tablename__ = "bad_payer_reports"

    reporter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trades_profiles.id"), nullable=False, index=True
    )
    incident_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    work_description: Mapped[str] = mapped_column(Text, nullable=False)
    agreed_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_owed: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_area: Mapped[str] = mapped_column(String(255), nullable=False)
    # Outward code only, e.g. "SW1"
    location_postcode: Mapped[str | None] = mapped_column(String(4), nullable=True, index=True)
    # Map pin, rounded to about 1km
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    invoice_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contract_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    communication_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    legal_consent_given: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    legal_consent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    truth_declaration: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[BadPayerStatus] = mapped_column(
        String(20), nullable=False, default=BadPayerStatus.PENDING_REVIEW.value, index=True
    )
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    disputes = relationship("BadPayerDispute", back_populates="report")


class BadPayerDispute(BaseModel):
    __tablename__ = "bad_payer_disputes"

    report_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("bad_payer_reports.id"), nullable=False, index=True
    )
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[DisputeStatus] = mapped_column(
        String(20), nullable=False, default=DisputeStatus.PENDING.value
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    handled_by: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    handled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    report = relationship("BadPayerReport", back_populates="disputes")
