"""004: create bets and outcomes tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bets (
            id                          VARCHAR(32)     PRIMARY KEY,
            title                       VARCHAR(200)    NOT NULL,
            description                 TEXT            NOT NULL,
            category                    VARCHAR(20)     NOT NULL,
            status                      VARCHAR(20)     NOT NULL DEFAULT 'DRAFT',
            closing_time                TIMESTAMPTZ     NOT NULL,
            resolution_time             TIMESTAMPTZ     NOT NULL,
            total_staked                BIGINT          NOT NULL DEFAULT 0,
            participant_count           INTEGER         NOT NULL DEFAULT 0,
            resolved_outcome_id         VARCHAR(32),
            resolved_at                 TIMESTAMPTZ,
            resolution_notes            TEXT,
            resolution_idempotency_key  VARCHAR(200),
            created_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ,
            CONSTRAINT ck_bets_status CHECK (
                status IN ('DRAFT', 'OPEN', 'CLOSED', 'RESOLVED', 'PAID', 'CANCELLED')
            ),
            CONSTRAINT ck_bets_category CHECK (
                category IN ('SPORTS', 'POLITICS', 'ENTERTAINMENT', 'MARKET', 'TECHNOLOGY')
            ),
            CONSTRAINT ck_bets_resolution_after_close CHECK (resolution_time > closing_time),
            CONSTRAINT ck_bets_total_staked_gte_0 CHECK (total_staked >= 0),
            CONSTRAINT ck_bets_participants_gte_0 CHECK (participant_count >= 0)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_bets_resolution_idempotency_key
        ON bets (resolution_idempotency_key)
        WHERE resolution_idempotency_key IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_bets_status_created ON bets (status, created_at DESC, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_bets_updated_at
            BEFORE UPDATE ON bets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE outcomes (
            id              VARCHAR(32)     PRIMARY KEY,
            bet_id          VARCHAR(32)     NOT NULL REFERENCES bets (id) ON DELETE CASCADE,
            title           VARCHAR(200)    NOT NULL,
            total_staked    BIGINT          NOT NULL DEFAULT 0,
            stake_count     INTEGER         NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_outcomes_bet_title UNIQUE (bet_id, title),
            CONSTRAINT ck_outcomes_total_staked_gte_0 CHECK (total_staked >= 0),
            CONSTRAINT ck_outcomes_stake_count_gte_0 CHECK (stake_count >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_outcomes_bet ON outcomes (bet_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS outcomes CASCADE;")
    op.execute("DROP TABLE IF EXISTS bets CASCADE;")
