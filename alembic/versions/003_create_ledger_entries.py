"""003: create ledger_entries table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            seq             BIGSERIAL       PRIMARY KEY,
            id              VARCHAR(32)     NOT NULL,
            wallet_id       VARCHAR(32)     NOT NULL REFERENCES wallets (id) ON DELETE RESTRICT,
            user_id         VARCHAR(64)     NOT NULL,
            kind            VARCHAR(30)     NOT NULL,
            amount          BIGINT          NOT NULL,
            description     VARCHAR(500)    NOT NULL,
            bet_id          VARCHAR(32),
            stake_id        VARCHAR(32),
            idempotency_key VARCHAR(200),
            metadata        JSONB,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_ledger_entries_id UNIQUE (id),
            CONSTRAINT ck_ledger_kind CHECK (
                kind IN (
                    'DEPOSIT', 'WITHDRAWAL',
                    'STAKE_LOCKED', 'STAKE_REFUND',
                    'WIN_PAYOUT', 'STAKE_FORFEIT', 'PLATFORM_FEE'
                )
            ),
            CONSTRAINT ck_ledger_amount_gt_0 CHECK (amount > 0)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_ledger_idempotency_key
        ON ledger_entries (idempotency_key)
        WHERE idempotency_key IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_ledger_wallet_seq ON ledger_entries (wallet_id, seq);")
    op.execute("CREATE INDEX idx_ledger_user_seq ON ledger_entries (user_id, seq DESC);")
    op.execute("""
        CREATE INDEX idx_ledger_bet
        ON ledger_entries (bet_id)
        WHERE bet_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_ledger_entries_append_only
            BEFORE UPDATE OR DELETE ON ledger_entries
            FOR EACH ROW EXECUTE FUNCTION fn_reject_ledger_mutation();
    """)
    op.execute(
        "COMMENT ON TABLE ledger_entries IS "
        "'Money movements: append-only, never updated or deleted. Amounts in cents';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
