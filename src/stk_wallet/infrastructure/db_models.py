"""SQLAlchemy ORM model for wallets.

Used for type reference only: persistence.py uses raw text() SQL.
Alembic migration 002 is the authoritative DDL source.
"""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.stk_common.database import Base


class WalletORM(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="ck_wallets_available_gte_0"),
        CheckConstraint("locked_balance >= 0", name="ck_wallets_locked_gte_0"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    available_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    locked_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
