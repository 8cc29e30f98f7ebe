"""Stakes REST API: the caller is identified by the X-User-Id header."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.database import get_db_session
from src.stk_common.response import ApiResponse, success_response, with_request_id
from src.stk_gateway.dependencies import get_current_user_id
from src.stk_stake.application.schemas import PlaceStakeRequest
from src.stk_stake.application.service import StakeApplicationService

router = APIRouter(prefix="/stakes", tags=["stakes"])

_service = StakeApplicationService()


@router.post("", status_code=201)
async def place_stake(
    body: PlaceStakeRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.place_stake(db, user_id, body)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("")
async def list_stakes(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: str | None = Query(None, description="Filter by StakeStatus"),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_stakes(db, user_id, status, cursor, limit)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/{stake_id}")
async def get_stake(
    stake_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_stake(db, user_id, stake_id)
    return with_request_id(success_response(data.model_dump()), request)
