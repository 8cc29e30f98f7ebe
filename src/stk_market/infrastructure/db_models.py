"""SQLAlchemy ORM models for bets and outcomes.

Used for type reference only: persistence.py uses raw text() SQL.
Alembic migration 004 is the authoritative DDL source.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.stk_common.database import Base


class BetORM(Base):
    __tablename__ = "bets"
    __table_args__ = (
        CheckConstraint("resolution_time > closing_time", name="ck_bets_resolution_after_close"),
        CheckConstraint("total_staked >= 0", name="ck_bets_total_staked_gte_0"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    closing_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolution_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_staked: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved_outcome_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_idempotency_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class OutcomeORM(Base):
    __tablename__ = "outcomes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    bet_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("bets.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    total_staked: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    stake_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
