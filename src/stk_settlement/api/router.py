"""Admin REST API: bet resolution, cancellation and consistency checks."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.database import get_db_session
from src.stk_common.response import ApiResponse, success_response, with_request_id
from src.stk_gateway.dependencies import get_current_user_id
from src.stk_market.application.schemas import ResolveBetRequest
from src.stk_settlement.application.admin_service import AdminService

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


@router.post("/bets/{bet_id}/resolve")
async def resolve_bet(
    bet_id: str,
    body: ResolveBetRequest,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.resolve_bet(db, bet_id, body)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/bets/{bet_id}/cancel")
async def cancel_bet(
    bet_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.cancel_bet(db, bet_id)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/bets/{bet_id}/paid")
async def mark_bet_paid(
    bet_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.mark_bet_paid(db, bet_id)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/bets/{bet_id}/verify")
async def verify_bet(
    bet_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.verify_bet(db, bet_id)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/wallets/{user_id}/verify")
async def verify_wallet(
    user_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.verify_wallet(db, user_id)
    return with_request_id(success_response(data.model_dump()), request)
