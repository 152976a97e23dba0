import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradesfinder.common.enums import ApplicationStatus, JobStatus
from tradesfinder.db.base import BaseModel, JSONType


class Job(BaseModel):
    __tablename__ = "jobs"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    trade_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trades.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    postcode: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    budget_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    budget_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    timeframe: Mapped[str | None] = mapped_column(String(20), nullable=True)
    images: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    status: Mapped[JobStatus] = mapped_column(
        String(20), nullable=False, default=JobStatus.OPEN.value, index=True
    )
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    customer = relationship("User", back_populates="jobs")
    applications = relationship("JobApplication", back_populates="job")


class JobApplication(BaseModel):
    __tablename__ = "job_applications"
    __table_args__ = (UniqueConstraint("job_id", "profile_id", name="uq_job_application_job_profile"),)

    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("jobs.id"), nullable=False, index=True
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trades_profiles.id"), nullable=False, index=True
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        String(20), nullable=False, default=ApplicationStatus.PENDING.value
    )
    cover_letter: Mapped[str] = mapped_column(Text, nullable=False)
    proposed_budget: Mapped[int | None] = mapped_column(Integer, nullable=True)
    proposed_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    job = relationship("Job", back_populates="applications")
