"""Daily watermark history tables: one row per subject per calendar day."""

import uuid
from datetime import date
from sqlalchemy import BigInteger, Date, Float, Integer, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.db.postgres import Base


class UserBalanceHistory(Base):
    __tablename__ = "user_balance_histories"
    __table_args__ = (
        UniqueConstraint("user_id", "timestamp", name="uq_user_balance_histories_user_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    timestamp: Mapped[date] = mapped_column(Date)
    balance: Mapped[int] = mapped_column(BigInteger)


class ResourceQuantityHistory(Base):
    __tablename__ = "resource_quantity_histories"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "resource_id", "timestamp",
            name="uq_resource_quantity_histories_user_resource_day"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    resource_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("resources.id", ondelete="CASCADE"), index=True
    )
    timestamp: Mapped[date] = mapped_column(Date)
    quantity: Mapped[float] = mapped_column(Float)
