"""002: create wallets table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallets (
            id                  VARCHAR(32) PRIMARY KEY,
            user_id             VARCHAR(64) NOT NULL,
            available_balance   BIGINT      NOT NULL DEFAULT 0,
            locked_balance      BIGINT      NOT NULL DEFAULT 0,
            version             BIGINT      NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ,
            CONSTRAINT uq_wallets_user_id          UNIQUE (user_id),
            CONSTRAINT ck_wallets_available_gte_0  CHECK (available_balance >= 0),
            CONSTRAINT ck_wallets_locked_gte_0     CHECK (locked_balance >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_wallets_updated_at
            BEFORE UPDATE ON wallets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON TABLE wallets IS "
        "'Per-user balance cache; must equal a replay of ledger_entries. Amounts in cents';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
