"""ORM mirrors, raw SQL and migrations must describe the same schema."""

import re
from enum import Enum
from pathlib import Path

import pytest
from sqlalchemy import CheckConstraint, Table

from src.stk_common.enums import BetCategory, BetStatus, LedgerEntryKind, StakeStatus
from src.stk_ledger.infrastructure import persistence as ledger_sql
from src.stk_ledger.infrastructure.db_models import LedgerEntryORM
from src.stk_market.infrastructure import persistence as bet_sql
from src.stk_market.infrastructure.db_models import BetORM, OutcomeORM
from src.stk_stake.infrastructure import persistence as stake_sql
from src.stk_stake.infrastructure.db_models import StakeORM
from src.stk_wallet.infrastructure import persistence as wallet_sql
from src.stk_wallet.infrastructure.db_models import WalletORM

VERSIONS = Path(__file__).resolve().parents[2] / "alembic" / "versions"


def _columns(csv: str) -> set[str]:
    return {c.strip() for c in csv.split(",") if c.strip()}


def _table(orm: type) -> Table:
    return orm.__table__  # type: ignore[attr-defined, no-any-return]


def _migration(prefix: str) -> str:
    (path,) = VERSIONS.glob(f"{prefix}_*.py")
    return path.read_text()


class TestSelectedColumnsExist:
    @pytest.mark.parametrize(
        "orm,columns",
        [
            (WalletORM, wallet_sql._COLUMNS),
            (LedgerEntryORM, ledger_sql._COLUMNS),
            (BetORM, bet_sql._BET_COLUMNS),
            (StakeORM, stake_sql._COLUMNS),
        ],
    )
    def test_sql_reads_only_mapped_columns(self, orm: type, columns: str) -> None:
        mapped = {c.name for c in _table(orm).columns}
        assert _columns(columns) <= mapped

    def test_outcomes_table(self) -> None:
        mapped = {c.name for c in _table(OutcomeORM).columns}
        assert {"id", "bet_id", "title", "total_staked", "stake_count"} <= mapped

    def test_ledger_metadata_column_name(self) -> None:
        assert "metadata" in {c.name for c in _table(LedgerEntryORM).columns}


class TestConstraintNames:
    @pytest.mark.parametrize(
        "orm,prefix",
        [(WalletORM, "002"), (BetORM, "004"), (StakeORM, "005")],
    )
    def test_orm_check_constraints_exist_in_migration(self, orm: type, prefix: str) -> None:
        ddl = _migration(prefix)
        names = [
            c.name for c in _table(orm).constraints if isinstance(c, CheckConstraint)
        ]
        assert names
        for name in names:
            assert name in ddl


class TestEnumsMatchChecks:
    @pytest.mark.parametrize(
        "enum,prefix,column",
        [
            (BetStatus, "004", "status"),
            (BetCategory, "004", "category"),
            (StakeStatus, "005", "status"),
            (LedgerEntryKind, "003", "kind"),
        ],
    )
    def test_check_lists_every_member(
        self, enum: type[Enum], prefix: str, column: str
    ) -> None:
        ddl = _migration(prefix)
        match = re.search(rf"{column}\s+IN\s*\(([^)]*)\)", ddl)
        assert match is not None
        allowed = set(re.findall(r"'([A-Z_]+)'", match.group(1)))
        assert allowed == {m.value for m in enum}
