"""Wallet REST API: the caller is identified by the X-User-Id header."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.database import get_db_session
from src.stk_common.response import ApiResponse, success_response, with_request_id
from src.stk_gateway.dependencies import get_current_user_id
from src.stk_wallet.application.schemas import FundsRequest
from src.stk_wallet.application.service import WalletApplicationService

router = APIRouter(prefix="/wallet", tags=["wallet"])

_service = WalletApplicationService()


@router.post("")
async def provision_wallet(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.provision_wallet(db, user_id)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("")
async def get_balance(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, user_id)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/deposit")
async def deposit(
    body: FundsRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.deposit(db, user_id, body.amount, body.idempotency_key)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/withdraw")
async def withdraw(
    body: FundsRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.withdraw(db, user_id, body.amount, body.idempotency_key)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/ledger")
async def list_ledger(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    kind: str | None = Query(None, description="Filter by LedgerEntryKind"),
) -> ApiResponse:
    data = await _service.list_ledger(db, user_id, cursor, limit, kind)
    return with_request_id(success_response(data.model_dump()), request)
