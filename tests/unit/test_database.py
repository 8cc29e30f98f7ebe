"""Tests for atomic() and storage error translation."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import DataError, IntegrityError, OperationalError

from src.stk_common.database import atomic, translate_storage_error
from src.stk_common.errors import (
    ConcurrencyError,
    DuplicateKeyError,
    LedgerAppendOnlyError,
    ValidationError,
)


def _integrity(message: str) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, Exception(message))


@pytest.fixture
def db():
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


class TestTranslateStorageError:
    def test_unique_violation(self) -> None:
        err = translate_storage_error(
            _integrity('duplicate key value violates unique constraint "uq_stakes_key"')
        )
        assert isinstance(err, DuplicateKeyError)

    def test_append_only_trigger(self) -> None:
        err = translate_storage_error(_integrity("ledger_entries is append-only"))
        assert isinstance(err, LedgerAppendOnlyError)
        assert err.code == 2003

    def test_check_violation(self) -> None:
        err = translate_storage_error(
            _integrity('new row violates check constraint "ck_wallets_available"')
        )
        assert type(err) is ValidationError

    def test_out_of_range_value_is_not_retriable(self) -> None:
        err = translate_storage_error(
            DataError("INSERT ...", {}, Exception("value out of range for type bigint"))
        )
        assert type(err) is ValidationError
        assert err.kind == "VALIDATION_ERROR"

    def test_other_failures_are_retriable(self) -> None:
        err = translate_storage_error(OperationalError("SELECT 1", {}, Exception("timeout")))
        assert isinstance(err, ConcurrencyError)


class TestAtomic:
    async def test_commits_on_success(self, db) -> None:
        async with atomic(db) as session:
            assert session is db
        db.commit.assert_awaited_once()
        db.rollback.assert_not_awaited()

    async def test_rolls_back_app_errors(self, db) -> None:
        with pytest.raises(ValidationError):
            async with atomic(db):
                raise ValidationError("bad input")
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    async def test_translates_commit_failure(self, db) -> None:
        db.commit = AsyncMock(side_effect=_integrity("duplicate key value"))
        with pytest.raises(DuplicateKeyError) as exc_info:
            async with atomic(db):
                pass
        db.rollback.assert_awaited_once()
        assert isinstance(exc_info.value.__cause__, IntegrityError)
