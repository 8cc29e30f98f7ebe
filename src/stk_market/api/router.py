"""Bets REST API: listing and detail are public; writes need a caller id."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.database import get_db_session
from src.stk_common.response import ApiResponse, success_response, with_request_id
from src.stk_gateway.dependencies import get_current_user_id
from src.stk_market.application.schemas import CreateBetRequest
from src.stk_market.application.service import BetApplicationService

router = APIRouter(prefix="/bets", tags=["bets"])

_service = BetApplicationService()


@router.get("")
async def list_bets(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: str | None = Query(None, description="BetStatus, or ALL (default OPEN)"),
    category: str | None = Query(None, description="BetCategory filter"),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_bets(db, status, category, cursor, limit)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/{bet_id}")
async def get_bet(
    bet_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_bet(db, bet_id)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("", status_code=201)
async def create_bet(
    body: CreateBetRequest,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_bet(db, body)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/{bet_id}/open")
async def open_bet(
    bet_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.open_bet(db, bet_id)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/{bet_id}/close")
async def close_bet(
    bet_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.close_bet(db, bet_id)
    return with_request_id(success_response(data.model_dump()), request)
