"""005: create stakes table

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE stakes (
            id                  VARCHAR(32)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL
                                REFERENCES wallets (user_id) ON DELETE RESTRICT,
            bet_id              VARCHAR(32)     NOT NULL REFERENCES bets (id) ON DELETE RESTRICT,
            outcome_id          VARCHAR(32)     NOT NULL REFERENCES outcomes (id) ON DELETE RESTRICT,
            status              VARCHAR(20)     NOT NULL DEFAULT 'ACTIVE',
            stake_amount        BIGINT          NOT NULL,
            potential_payout    BIGINT,
            actual_payout       BIGINT,
            idempotency_key     VARCHAR(200)    NOT NULL,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            resolved_at         TIMESTAMPTZ,
            CONSTRAINT uq_stakes_idempotency_key UNIQUE (idempotency_key),
            CONSTRAINT ck_stakes_status CHECK (status IN ('ACTIVE', 'WON', 'LOST', 'CANCELLED')),
            CONSTRAINT ck_stakes_amount_gt_0 CHECK (stake_amount > 0),
            CONSTRAINT ck_stakes_actual_payout_gte_0 CHECK (actual_payout IS NULL OR actual_payout >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_stakes_bet ON stakes (bet_id, created_at);")
    op.execute("CREATE INDEX idx_stakes_user_created ON stakes (user_id, created_at DESC, id DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS stakes CASCADE;")
