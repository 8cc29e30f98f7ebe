from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings
from src.stk_common.errors import (
    AppError,
    ConcurrencyError,
    DuplicateKeyError,
    LedgerAppendOnlyError,
    ValidationError,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models across modules."""

    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an AsyncSession, auto-closes after request."""
    async with async_session_factory() as session:
        yield session


def translate_storage_error(exc: SQLAlchemyError) -> AppError:
    """Map a failed write to the error taxonomy.

    Unique violations are business-rule breaches (a key was reused). Other
    integrity violations (CHECK, NOT NULL, FK) and out-of-range values are
    validation failures. Everything else is treated as transient.
    """
    if isinstance(exc, IntegrityError):
        detail = str(exc.orig)
        lowered = detail.lower()
        if "append-only" in lowered:
            return LedgerAppendOnlyError(detail)
        if "unique" in lowered or "duplicate" in lowered:
            return DuplicateKeyError(detail)
        return ValidationError(f"Storage constraint rejected the write: {detail}")
    if isinstance(exc, DataError):
        return ValidationError(f"Storage rejected the value: {exc.orig}")
    return ConcurrencyError(
        f"Storage failure ({exc.__class__.__name__}); the operation can be retried"
    )


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit everything written inside the block as one unit, or nothing.

    Usage:
        async with atomic(db):
            await repo.save_wallet(db, wallet)
            await ledger.append(db, entry)
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_storage_error(exc) from exc
    except BaseException:
        await db.rollback()
        raise
