from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradesfinder.common.enums import UserRole
from tradesfinder.db.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    # Null for guest customers created from an anonymous quote request
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[UserRole] = mapped_column(String(20), nullable=False, default=UserRole.CUSTOMER.value)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Relationships
    profile = relationship("TradesProfile", back_populates="user", uselist=False)
    jobs = relationship("Job", back_populates="customer")
