"""SQLAlchemy ORM model for stakes.

Used for type reference only: persistence.py uses raw text() SQL.
Alembic migration 005 is the authoritative DDL source.
"""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.stk_common.database import Base


class StakeORM(Base):
    __tablename__ = "stakes"
    __table_args__ = (
        CheckConstraint("stake_amount > 0", name="ck_stakes_amount_gt_0"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("wallets.user_id", ondelete="RESTRICT"), nullable=False
    )
    bet_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("bets.id", ondelete="RESTRICT"), nullable=False
    )
    outcome_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("outcomes.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")
    stake_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    potential_payout: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    actual_payout: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
