"""Roles and claims owned by the identity subsystem."""

import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.postgres import Base
from app.utils.clock import utcnow


class Role(Base):
    """Named role that can be granted to users."""
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(50), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class UserRole(Base):
    __tablename__ = "user_roles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    role = relationship("Role")


class UserClaim(Base):
    """Key/value assertion attached to a user identity."""
    __tablename__ = "user_claims"
    __table_args__ = (
        UniqueConstraint("user_id", "claim_type", "claim_value", name="uq_user_claims_user_type_value"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    claim_type: Mapped[str] = mapped_column(String(100))
    claim_value: Mapped[str] = mapped_column(String(255))

    user = relationship("User", back_populates="claims")
