"""User model with organization support and ledger balance."""

import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, BigInteger, Integer, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.postgres import Base
from app.utils.clock import utcnow


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    user_name: Mapped[str] = mapped_column(String(255))
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    star_citizen_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Ledger state; version is bumped on every balance write (compare-and-swap)
    balance: Mapped[int] = mapped_column(BigInteger, default=0)
    version: Mapped[int] = mapped_column(Integer, default=1)

    # Organization relationship (nullable for unaffiliated users)
    org_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    organization = relationship("Organization", back_populates="users")

    # Scoped to org_id
    is_owner: Mapped[bool] = mapped_column(Boolean, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)

    user_resources = relationship("UserResource", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    claims = relationship("UserClaim", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
