"""Resource catalog and per-user resource holdings."""

import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Float, Integer, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.postgres import Base
from app.utils.clock import utcnow


class Resource(Base):
    """Global catalog entry, upserted by its natural key (code)."""
    __tablename__ = "resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100))
    code: Mapped[str] = mapped_column(String(4), unique=True, index=True)
    type: Mapped[str] = mapped_column(String(50), default="")
    price_buy: Mapped[float] = mapped_column(Float, default=0.0)
    price_sell: Mapped[float] = mapped_column(Float, default=0.0)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class UserResource(Base):
    __tablename__ = "user_resources"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    # Catalog rows in use cannot be removed
    resource_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("resources.id", ondelete="RESTRICT"), primary_key=True
    )
    quantity: Mapped[float] = mapped_column(Float, default=0.0)
    version: Mapped[int] = mapped_column(Integer, default=1)

    user = relationship("User", back_populates="user_resources")
    resource = relationship("Resource")
