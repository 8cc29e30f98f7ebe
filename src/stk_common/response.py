"""Unified API response wrapper.

All API endpoints return this format:
{
    "code": 0,           // 0=success, non-0=error code
    "message": "success",
    "data": { ... },     // on error: {"kind": "<taxonomy kind>"}
    "timestamp": "...",
    "request_id": "..."
}
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def success_response(data: Any = None) -> ApiResponse:
    return ApiResponse(code=0, message="success", data=data)


def error_response(code: int, message: str, kind: str | None = None) -> ApiResponse:
    return ApiResponse(
        code=code,
        message=message,
        data={"kind": kind} if kind else None,
    )


def with_request_id(resp: ApiResponse, request: Request) -> ApiResponse:
    """Reuse the id assigned by RequestLogMiddleware when there is one."""
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
