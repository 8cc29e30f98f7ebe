"""WalletRepository: concrete implementation of WalletRepositoryProtocol.

Balances are computed by the Wallet aggregate and written back with an
optimistic version check. A result of 0 rows means someone else wrote the
row since it was read.

Transaction ownership: the CALLER commits via `atomic(db)`.
"""

import dataclasses
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.errors import InternalError, StaleWriteError
from src.stk_common.money import Money
from src.stk_wallet.domain.models import Wallet

_COLUMNS = "id, user_id, available_balance, locked_balance, version, created_at, updated_at"

_GET_SQL = text(f"SELECT {_COLUMNS} FROM wallets WHERE user_id = :user_id")

_GET_FOR_UPDATE_SQL = text(
    f"SELECT {_COLUMNS} FROM wallets WHERE user_id = :user_id FOR UPDATE"
)

_GET_MANY_SQL = text(
    f"SELECT {_COLUMNS} FROM wallets WHERE user_id IN :user_ids ORDER BY user_id"
).bindparams(bindparam("user_ids", expanding=True))

_GET_MANY_FOR_UPDATE_SQL = text(
    f"SELECT {_COLUMNS} FROM wallets WHERE user_id IN :user_ids ORDER BY user_id FOR UPDATE"
).bindparams(bindparam("user_ids", expanding=True))

_INSERT_SQL = text(f"""
    INSERT INTO wallets (id, user_id, available_balance, locked_balance, version, created_at)
    VALUES (:id, :user_id, :available_balance, :locked_balance, :version, :created_at)
    RETURNING {_COLUMNS}
""")

_SAVE_SQL = text(f"""
    UPDATE wallets
    SET available_balance = :available_balance,
        locked_balance    = :locked_balance,
        version           = version + 1,
        updated_at        = :updated_at
    WHERE id = :id AND version = :version
    RETURNING {_COLUMNS}
""")


def _row_to_wallet(row: Any) -> Wallet:
    return Wallet(
        id=row.id,
        user_id=row.user_id,
        available_balance=Money.from_cents(row.available_balance),
        locked_balance=Money.from_cents(row.locked_balance),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class WalletRepository:
    async def get_wallet_by_user_id(
        self, db: AsyncSession, user_id: str, for_update: bool = False
    ) -> Wallet | None:
        sql = _GET_FOR_UPDATE_SQL if for_update else _GET_SQL
        result = await db.execute(sql, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def get_wallets_by_user_ids(
        self, db: AsyncSession, user_ids: list[str], for_update: bool = False
    ) -> dict[str, Wallet]:
        if not user_ids:
            return {}
        sql = _GET_MANY_FOR_UPDATE_SQL if for_update else _GET_MANY_SQL
        result = await db.execute(sql, {"user_ids": sorted(set(user_ids))})
        return {row.user_id: _row_to_wallet(row) for row in result.fetchall()}

    async def create_wallet(self, db: AsyncSession, wallet: Wallet) -> Wallet:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": wallet.id,
                "user_id": wallet.user_id,
                "available_balance": wallet.available_balance.cents,
                "locked_balance": wallet.locked_balance.cents,
                "version": wallet.version,
                "created_at": wallet.created_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Wallet insert returned no rows")
        return _row_to_wallet(row)

    async def save_wallet(self, db: AsyncSession, wallet: Wallet) -> Wallet:
        result = await db.execute(
            _SAVE_SQL,
            {
                "id": wallet.id,
                "available_balance": wallet.available_balance.cents,
                "locked_balance": wallet.locked_balance.cents,
                "updated_at": wallet.updated_at,
                "version": wallet.version,
            },
        )
        row = result.fetchone()
        if row is None:
            raise StaleWriteError("Wallet", wallet.id)
        return dataclasses.replace(wallet, version=row.version)
